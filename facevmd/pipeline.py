#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Face measurements -> VMD conversion pipeline

Pipeline:
    measurement frames → Channel Mapper (per frame)
    → Curve Filter & Resampler → Keyframe Reducer → Expression Refiner
    → Channel Renamer → VMD writer
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from loguru import logger
from tqdm import tqdm

from facevmd.channel_mapper import map_frame
from facevmd.channel_renamer import RenameTable, rename_channels
from facevmd.curve_filter import DEFAULT_TARGET_FPS, smooth_document
from facevmd.expression_refiner import refine_expressions
from facevmd.keyframe_reducer import reduce_document
from facevmd.measurements import MeasurementFrame
from facevmd.motion_document import DEFAULT_MODEL_NAME, DEFAULT_VERSION, MotionDocument
from facevmd.vmd_codec import write_vmd


# Default thresholds
DEFAULT_SOURCE_FPS = 30.0
DEFAULT_CUTOFF_FREQ = 5.0  # Hz
DEFAULT_THRESHOLD_POS = 0.5  # MMD units
DEFAULT_THRESHOLD_ROT = 3.0  # degrees
DEFAULT_THRESHOLD_MORPH = 0.1  # weight


@dataclass
class ConversionConfig:
    """Run parameters for one conversion."""
    cutoff_freq: float = DEFAULT_CUTOFF_FREQ
    threshold_pos: float = DEFAULT_THRESHOLD_POS
    threshold_rot: float = DEFAULT_THRESHOLD_ROT
    threshold_morph: float = DEFAULT_THRESHOLD_MORPH
    source_fps: float = DEFAULT_SOURCE_FPS
    target_fps: float = DEFAULT_TARGET_FPS
    version: str = DEFAULT_VERSION
    model_name: str = DEFAULT_MODEL_NAME

    def validate(self) -> None:
        for key in ('cutoff_freq', 'threshold_pos', 'threshold_rot', 'threshold_morph'):
            if getattr(self, key) < 0:
                raise ValueError(f"{key} must be >= 0, got {getattr(self, key)}")
        for key in ('source_fps', 'target_fps'):
            if not getattr(self, key) > 0:
                raise ValueError(f"{key} must be > 0, got {getattr(self, key)}")


def build_document(frames: Iterable[Optional[MeasurementFrame]], config: ConversionConfig) -> Dict:
    """
    Run the per-frame mapping over the whole measurement stream.

    Returns:
        Dictionary with the populated document and frame statistics
    """
    document = MotionDocument(version=config.version, model_name=config.model_name)
    total = 0
    skipped = 0
    without_gaze = 0

    for frame in tqdm(frames, desc="Mapping frames"):
        total += 1
        if frame is None:
            # No face detected: the frame leaves a gap in every channel
            skipped += 1
            logger.debug(f"No face in source frame {total - 1}, skipped")
            continue
        if not frame.has_gaze:
            without_gaze += 1
        map_frame(document, frame)

    return {
        'document': document,
        'total_frames': total,
        'skipped_frames': skipped,
        'frames_without_gaze': without_gaze,
    }


def process_document(document: MotionDocument, config: ConversionConfig,
                     rename_table: Optional[RenameTable] = None) -> Dict:
    """Whole-stream stages: smoothing, reduction, refinement and renaming (in place)."""
    logger.info("Smoothing & reduction start")
    logger.info(f"  cutoff frequency: {config.cutoff_freq}")
    logger.info(f"  position threshold: {config.threshold_pos}")
    logger.info(f"  rotation threshold: {config.threshold_rot}")
    logger.info(f"  morph threshold: {config.threshold_morph}")
    smooth_document(document, config.cutoff_freq, config.source_fps, config.target_fps)
    key_counts = reduce_document(document, config.threshold_pos, config.threshold_rot, config.threshold_morph)

    logger.info("Refining expressions")
    refined = refine_expressions(document)

    logger.info("Renaming morphs & bones")
    collisions = rename_channels(document, rename_table or RenameTable())

    return {
        'key_counts': key_counts,
        'refined_frames': sum(refined),
        'rename_collisions': collisions,
    }


def convert_measurements(frames: Iterable[Optional[MeasurementFrame]], output_path: str,
                         config: Optional[ConversionConfig] = None,
                         rename_table: Optional[RenameTable] = None) -> Dict:
    """
    Main conversion function.

    Raises:
        ValueError: invalid configuration
        OSError: output_path cannot be written

    Returns:
        Dictionary with conversion report
    """
    config = config or ConversionConfig()
    config.validate()

    mapped = build_document(frames, config)
    document = mapped['document']
    if mapped['skipped_frames']:
        logger.warning(f"No face found in {mapped['skipped_frames']}/{mapped['total_frames']} frames")

    processed = process_document(document, config, rename_table)

    logger.info(f"VMD output start: {output_path}")
    n_bytes = write_vmd(document, output_path)

    return {
        'output_vmd': output_path,
        'total_frames': mapped['total_frames'],
        'skipped_frames': mapped['skipped_frames'],
        'frames_without_gaze': mapped['frames_without_gaze'],
        'key_counts': processed['key_counts'],
        'refined_frames': processed['refined_frames'],
        'rename_collisions': len(processed['rename_collisions']),
        'bytes_written': n_bytes,
        'status': 'SUCCESS',
    }
