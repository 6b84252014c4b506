"""
Resolve command implementation.

Shows which prebuilt archive the manifest selects, without downloading.
"""

import logging

from sherpakit.cli.utils import print_json, settings_from_args
from sherpakit.config.features import validate_features
from sherpakit.dist.manifest import DistributionManifest

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the resolve command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 when an archive is selected, 2 on a lookup miss)
    """
    settings = settings_from_args(args)
    manifest = DistributionManifest.load(args.dist)
    target = settings.target_info

    validate_features(settings.features, target, manifest)
    entry = manifest.resolve(target, settings.features, settings.is_dynamic_hint)

    if entry is None:
        print_json(
            {
                "target": target.triple,
                "features": list(settings.features),
                "tag": manifest.tag,
                "entry": None,
            }
        )
        logger.warning(f"No prebuilt archive for {target} ({settings.features})")
        return 2

    print_json(
        {
            "target": target.triple,
            "features": list(settings.features),
            "tag": manifest.tag,
            "entry": {
                "archive": entry.archive_name,
                "url": entry.url,
                "checksum": entry.checksum,
                "is_dynamic": entry.is_dynamic,
                "variant": entry.variant,
                "explicit_libraries": (
                    list(entry.explicit_libraries)
                    if entry.explicit_libraries is not None
                    else None
                ),
            },
        }
    )
    return 0
