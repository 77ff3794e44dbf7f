#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
read_face_vmd: recorded facial measurements -> VMD motion file

Converts a face tracking run (head pose, action units, gaze) dumped with
joblib into a VMD motion for an MMD model.

Pipeline Position:
    Face tracking → measurement .pkl → THIS CONVERTER → .vmd → MMD

Usage:
    python read_face_vmd.py --input face.pkl --output face.vmd
    python read_face_vmd.py --input face.pkl --output face.vmd --cutoff 3 --threshold_rot 2 --nameconf names.txt
"""

import argparse
import json
import os
import sys

from loguru import logger

from facevmd.channel_renamer import load_rename_table
from facevmd.measurements import InputStreamError, RecordedMeasurementStream
from facevmd.pipeline import (
    DEFAULT_CUTOFF_FREQ,
    DEFAULT_THRESHOLD_MORPH,
    DEFAULT_THRESHOLD_POS,
    DEFAULT_THRESHOLD_ROT,
    ConversionConfig,
    convert_measurements,
)
from facevmd.curve_filter import DEFAULT_TARGET_FPS


EXIT_SUCCESS = 0
EXIT_INPUT_ERROR = 1
EXIT_OUTPUT_ERROR = 2
EXIT_CONFIG_ERROR = 3


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Convert recorded facial measurements into a VMD motion file',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python read_face_vmd.py --input face.pkl --output face.vmd
  python read_face_vmd.py --input face.pkl --output face.vmd --cutoff 0
  python read_face_vmd.py --input face.pkl --output face.vmd --nameconf names.txt --report report.json
        """
    )

    parser.add_argument('--input', type=str, required=True,
                        help='Recorded measurement stream (.pkl written with joblib)')
    parser.add_argument('--output', type=str, required=True,
                        help='Output VMD file path')
    parser.add_argument('--cutoff', type=float, default=DEFAULT_CUTOFF_FREQ,
                        help=f'Low-pass cutoff frequency in Hz, 0 disables smoothing (default: {DEFAULT_CUTOFF_FREQ})')
    parser.add_argument('--threshold_pos', type=float, default=DEFAULT_THRESHOLD_POS,
                        help=f'Position reduction threshold, 0 keeps every key (default: {DEFAULT_THRESHOLD_POS})')
    parser.add_argument('--threshold_rot', type=float, default=DEFAULT_THRESHOLD_ROT,
                        help=f'Rotation reduction threshold in degrees (default: {DEFAULT_THRESHOLD_ROT})')
    parser.add_argument('--threshold_morph', type=float, default=DEFAULT_THRESHOLD_MORPH,
                        help=f'Morph reduction threshold (default: {DEFAULT_THRESHOLD_MORPH})')
    parser.add_argument('--fps', type=float, default=None,
                        help='Source frame rate (default: taken from the recording)')
    parser.add_argument('--target_fps', type=float, default=DEFAULT_TARGET_FPS,
                        help=f'Output frame rate (default: {DEFAULT_TARGET_FPS})')
    parser.add_argument('--nameconf', type=str, default=None,
                        help='Bone/morph rename table, one "source -> target" per line')
    parser.add_argument('--report', type=str, default=None,
                        help='Output JSON report path (optional)')
    parser.add_argument('--verbose', action='store_true',
                        help='Log per-frame details')
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    if not args.verbose:
        logger.remove()
        logger.add(sys.stderr, level='INFO')

    try:
        stream = RecordedMeasurementStream.load(args.input)
    except InputStreamError as e:
        logger.error(f"Open error: {e}")
        return EXIT_INPUT_ERROR

    config = ConversionConfig(
        cutoff_freq=args.cutoff,
        threshold_pos=args.threshold_pos,
        threshold_rot=args.threshold_rot,
        threshold_morph=args.threshold_morph,
        source_fps=args.fps if args.fps is not None else stream.fps,
        target_fps=args.target_fps,
    )
    try:
        config.validate()
        rename_table = load_rename_table(args.nameconf)
    except (ValueError, OSError) as e:
        logger.error(f"Invalid configuration: {e}")
        return EXIT_CONFIG_ERROR

    logger.info("=" * 70)
    logger.info("Face -> VMD")
    logger.info("=" * 70)
    logger.info(f"Input: {args.input}")
    logger.info(f"Output: {args.output}")
    logger.info(f"FPS: {config.source_fps} -> {config.target_fps}")

    try:
        output_dir = os.path.dirname(args.output)
        if output_dir and not os.path.exists(output_dir):
            os.makedirs(output_dir, exist_ok=True)
        report = convert_measurements(stream, args.output, config, rename_table)
    except OSError as e:
        logger.error(f"Failed to write {args.output}: {e}")
        return EXIT_OUTPUT_ERROR
    except ValueError as e:
        # Config is validated above; what is left comes from the recorded frames
        logger.error(f"Invalid measurement stream {args.input}: {e}")
        return EXIT_INPUT_ERROR

    logger.info("=" * 70)
    logger.info("Conversion Complete")
    logger.info("=" * 70)
    logger.info(f"Total frames: {report['total_frames']} ({report['skipped_frames']} without a face)")
    for kind, count in report['key_counts']['after'].items():
        logger.info(f"{kind} keys: {report['key_counts']['before'][kind]} -> {count}")

    if args.report:
        try:
            with open(args.report, 'w') as f:
                json.dump(report, f, indent=2)
        except OSError as e:
            logger.error(f"Failed to write report {args.report}: {e}")
            return EXIT_OUTPUT_ERROR
        logger.info(f"Report saved to: {args.report}")

    return EXIT_SUCCESS


if __name__ == '__main__':
    sys.exit(main())
