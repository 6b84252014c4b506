"""
Digest command implementation.

Refreshes the checksum table of a distribution manifest.
"""

import logging
from pathlib import Path

from sherpakit.dist.digest import refresh_manifest
from sherpakit.dist.manifest import DistributionManifest

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the digest command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 when every archive was hashed, 1 when some were skipped)
    """
    dist_path = Path(args.dist) if args.dist else DistributionManifest.default_dist_path()
    manifest = DistributionManifest.load(dist_path)
    expected = len(manifest.archives())

    checksums = refresh_manifest(dist_path, new_tag=args.tag, keep_going=args.keep_going)

    print(f"Hashed {len(checksums)}/{expected} archives")
    if len(checksums) < expected:
        logger.warning("Some archives were skipped; their targets fall back to source builds")
        return 1
    return 0
