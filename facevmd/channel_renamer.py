"""
Channel Renamer

Maps the stock MMD bone/morph names onto a particular model's names through
a plain-text table:

    # source -> target
    まばたき -> ウィンク
    頭 -> Head

Names without an entry are left alone.
"""

from typing import Dict, List, Optional, Tuple

from loguru import logger

from facevmd.motion_document import MORPH, MotionDocument


SEPARATOR = '->'


class RenameTable:
    """Read-only source name -> target name lookup."""

    def __init__(self, mapping: Optional[Dict[str, str]] = None):
        self._mapping = dict(mapping or {})

    def __len__(self) -> int:
        return len(self._mapping)

    def __contains__(self, name: str) -> bool:
        return name in self._mapping

    def lookup(self, name: str) -> str:
        return self._mapping.get(name, name)


def parse_rename_table(text: str) -> RenameTable:
    mapping = {}
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith('#'):
            continue
        source, sep, target = line.partition(SEPARATOR)
        source, target = source.strip(), target.strip()
        if not sep or not source or not target:
            logger.warning(f"Rename table line {lineno} ignored (expected 'source -> target'): {raw!r}")
            continue
        mapping[source] = target
    return RenameTable(mapping)


def load_rename_table(path: Optional[str]) -> RenameTable:
    """Load a rename table file; no path means identity renaming."""
    if not path:
        return RenameTable()
    with open(path, 'r', encoding='utf-8-sig') as f:
        table = parse_rename_table(f.read())
    logger.info(f"Loaded {len(table)} rename entries from {path}")
    return table


def rename_channels(document: MotionDocument, table: RenameTable) -> List[Tuple[str, str]]:
    """
    Rename every channel in place.

    Rotation and position channels share the VMD bone block, so any two bone
    channels landing on one name collide, whatever their kind. Colliding
    channels are all kept and reported; the consuming tool applies one of
    the records.

    Returns:
        (block, name) pairs that collided, block being 'bone' or 'morph'
    """
    collisions = []
    seen = set()
    for channel in document.channels():
        channel.name = table.lookup(channel.name)
        block = 'morph' if channel.kind == MORPH else 'bone'
        key = (block, channel.name)
        if key in seen:
            logger.warning(f"Rename collision: more than one {block} channel is named {channel.name!r}")
            collisions.append(key)
        seen.add(key)
    return collisions
