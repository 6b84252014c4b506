"""
Cache command implementation.

Lists or cleans the prebuilt archive cache.
"""

import logging

from sherpakit.artifacts.cache import ArtifactCache
from sherpakit.cli.utils import format_size
from sherpakit.core.directory import get_global_cache_dir
from sherpakit.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the cache command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    root = args.cache_dir or get_global_cache_dir()
    if root is None:
        raise ConfigurationError("No cache directory available; pass --cache-dir")

    cache = ArtifactCache(root)

    if args.clean:
        removed = cache.clean(target=args.target)
        print(f"Removed {removed} cache entries from {root}")
        return 0

    slots = cache.slots()
    if not slots:
        print(f"Cache is empty: {root}")
        return 0

    print(f"Cache: {root}")
    total = 0
    for slot in slots:
        total += slot.size_bytes
        print(f"  {slot.target}  {slot.checksum[:16]}  {format_size(slot.size_bytes)}")
    print(f"Total: {len(slots)} entries, {format_size(total)}")
    return 0
