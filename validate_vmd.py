#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Validate a VMD motion file
Checks: block counts, NaNs, Infs, unit quaternions, morph weight range,
per-name frame order
"""

import struct
import sys
import argparse
from typing import Dict, Union

import numpy as np
from loguru import logger


ENCODING = 'cp932'
HEADER = struct.Struct('<30s20s')
COUNT = struct.Struct('<I')
BONE = struct.Struct('<15sI3f4f64s')
MORPH = struct.Struct('<15sIf')


def decode_name(raw: bytes) -> str:
    return raw.split(b'\0', 1)[0].decode(ENCODING, errors='replace')


def read_vmd(source: Union[str, bytes]) -> Dict:
    """
    Read the header, bone and morph blocks of a VMD file.

    Args:
        source: file path or the file's bytes

    Returns:
        dict with version, model_name and 'bones' / 'morphs' record lists
    """
    if isinstance(source, (bytes, bytearray)):
        data = bytes(source)
    else:
        with open(source, 'rb') as f:
            data = f.read()

    offset = 0
    version, model_name = HEADER.unpack_from(data, offset)
    offset += HEADER.size

    bones = []
    (n_bones,) = COUNT.unpack_from(data, offset)
    offset += COUNT.size
    for _ in range(n_bones):
        name, frame, px, py, pz, qx, qy, qz, qw, interpolation = BONE.unpack_from(data, offset)
        offset += BONE.size
        bones.append({
            'raw_name': name,
            'name': decode_name(name),
            'frame': frame,
            'position': (px, py, pz),
            'rotation': (qx, qy, qz, qw),
            'interpolation': interpolation,
        })

    morphs = []
    (n_morphs,) = COUNT.unpack_from(data, offset)
    offset += COUNT.size
    for _ in range(n_morphs):
        name, frame, weight = MORPH.unpack_from(data, offset)
        offset += MORPH.size
        morphs.append({'raw_name': name, 'name': decode_name(name), 'frame': frame, 'weight': weight})

    return {
        'raw_version': version,
        'version': decode_name(version),
        'raw_model_name': model_name,
        'model_name': decode_name(model_name),
        'bones': bones,
        'morphs': morphs,
        'trailing_bytes': len(data) - offset,
    }


def _frames_increasing(records) -> bool:
    last = {}
    for record in records:
        key = record['name']
        if key in last and record['frame'] <= last[key]:
            return False
        last[key] = record['frame']
    return True


def validate_vmd(vmd_path):
    """
    Validate VMD output file
    """
    logger.info(f"Loading: {vmd_path}")
    try:
        vmd = read_vmd(vmd_path)
    except (OSError, struct.error) as e:
        logger.error(f"Failed to read VMD: {e}")
        return False

    valid = True
    logger.info(f"  version: {vmd['version']!r}, model: {vmd['model_name']!r}")

    bones = vmd['bones']
    if bones:
        positions = np.array([b['position'] for b in bones])
        rotations = np.array([b['rotation'] for b in bones])
        if not np.isfinite(positions).all() or not np.isfinite(rotations).all():
            logger.error("  bone records contain NaN/Inf values")
            valid = False
        norms = np.linalg.norm(rotations, axis=1)
        if np.max(np.abs(norms - 1.0)) > 1e-3:
            logger.error(f"  non-unit quaternions: norm range [{norms.min():.4f}, {norms.max():.4f}]")
            valid = False
        else:
            logger.info(f"  ✓ {len(bones)} bone keys, {len({b['name'] for b in bones})} bones")
        if not _frames_increasing(bones):
            logger.warning("  bone keys of one name are not in frame order (more than one track per bone?)")

    morphs = vmd['morphs']
    if morphs:
        weights = np.array([m['weight'] for m in morphs])
        if not np.isfinite(weights).all():
            logger.error("  morph weights contain NaN/Inf values")
            valid = False
        elif weights.min() < 0.0 or weights.max() > 1.0:
            logger.error(f"  morph weights outside [0, 1]: [{weights.min():.3f}, {weights.max():.3f}]")
            valid = False
        else:
            logger.info(f"  ✓ {len(morphs)} morph keys, {len({m['name'] for m in morphs})} morphs")
        if not _frames_increasing(morphs):
            logger.error("  morph keys are not in frame order")
            valid = False

    if valid:
        logger.info("✓ VMD validation PASSED")
    else:
        logger.error("✗ VMD validation FAILED")
    return valid


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description='Validate a VMD motion file')
    parser.add_argument('vmd_file', type=str, help='Path to .vmd file to validate')

    args = parser.parse_args(argv)

    success = validate_vmd(args.vmd_file)
    return 0 if success else 1


if __name__ == '__main__':
    sys.exit(main())
