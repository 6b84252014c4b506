"""
Build command implementation.

Runs the native dependency pipeline and prints link directives on stdout.
"""

import logging

from sherpakit.cli.utils import enable_debug_logging, print_json, settings_from_args
from sherpakit.link.sink import RecordingSink, TextDirectiveSink
from sherpakit.pipeline import run_pipeline

logger = logging.getLogger(__name__)


def result_to_dict(result, sink: RecordingSink) -> dict:
    """JSON view of a pipeline result and the directives it produced."""
    return {
        "target": result.target.triple,
        "features": list(result.features),
        "path": result.path,
        "is_dynamic": result.is_dynamic,
        "archive": result.entry.archive_name if result.entry else None,
        "artifact": result.artifact.to_dict() if result.artifact else None,
        "plan": result.plan.to_dict() if result.plan else None,
        "header": str(result.header) if result.header else None,
        "distributed": [str(p) for p in result.distributed],
        "directives": sink.lines(),
    }


def run(args) -> int:
    """
    Run the build command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    settings = settings_from_args(args)
    if settings.debug:
        enable_debug_logging()
    logger.debug(f"Settings: {settings.describe()}")

    if args.json:
        sink = RecordingSink()
        result = run_pipeline(settings, sink)
        print_json(result_to_dict(result, sink))
    else:
        result = run_pipeline(settings, TextDirectiveSink())

    logger.info(f"sherpa-onnx resolved via {result.path} for {result.target}")
    if result.distributed:
        logger.info(f"Copied {len(result.distributed)} shared libraries")
    return 0
