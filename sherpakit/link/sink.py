"""
Build directive sinks.

The pipeline hands its results to the surrounding build system as a stream of
directives: link search paths, libraries, frameworks and the environment
variables that should trigger a re-run. ``TextDirectiveSink`` prints them one
per line::

    sherpakit:link-search=/home/user/.cache/sherpa-rs/.../lib
    sherpakit:link-lib=dylib=sherpa-onnx-c-api
    sherpakit:link-lib=framework=CoreML
    sherpakit:rerun-if-env-changed=SHERPA_LIB_PATH
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional, TextIO, Tuple, Union

from sherpakit.link.planner import FRAMEWORK, LinkPlan

logger = logging.getLogger(__name__)

DIRECTIVE_PREFIX = "sherpakit:"

LINK_SEARCH = "link-search"
LINK_LIB = "link-lib"
RERUN_IF_ENV_CHANGED = "rerun-if-env-changed"
WARNING = "warning"


class DirectiveSink:
    """Base class of directive consumers."""

    def emit(self, directive: str, value: str) -> None:
        raise NotImplementedError

    def link_search(self, path: Union[str, Path]) -> None:
        self.emit(LINK_SEARCH, str(path))

    def link_lib(self, name: str, kind: str) -> None:
        self.emit(LINK_LIB, f"{kind}={name}")

    def link_framework(self, name: str) -> None:
        self.emit(LINK_LIB, f"{FRAMEWORK}={name}")

    def rerun_if_env_changed(self, variable: str) -> None:
        self.emit(RERUN_IF_ENV_CHANGED, variable)

    def warning(self, message: str) -> None:
        self.emit(WARNING, message)


class TextDirectiveSink(DirectiveSink):
    """Write directives as ``sherpakit:<directive>=<value>`` lines."""

    def __init__(self, stream: Optional[TextIO] = None, prefix: str = DIRECTIVE_PREFIX):
        self.stream = stream if stream is not None else sys.stdout
        self.prefix = prefix

    def emit(self, directive: str, value: str) -> None:
        line = f"{self.prefix}{directive}={value}"
        logger.debug(line)
        self.stream.write(line + "\n")
        self.stream.flush()


class RecordingSink(DirectiveSink):
    """Keep directives in memory."""

    def __init__(self):
        self.directives: List[Tuple[str, str]] = []

    def emit(self, directive: str, value: str) -> None:
        logger.debug(f"{directive}={value}")
        self.directives.append((directive, value))

    def values(self, directive: str) -> List[str]:
        return [value for name, value in self.directives if name == directive]

    def lines(self, prefix: str = DIRECTIVE_PREFIX) -> List[str]:
        return [f"{prefix}{name}={value}" for name, value in self.directives]


def emit_plan(plan: LinkPlan, sink: DirectiveSink) -> None:
    """Emit a link plan in order: search paths, libraries, frameworks, extras."""
    for path in plan.search_paths:
        sink.link_search(path)
    for library in plan.libraries:
        sink.link_lib(library.name, library.kind)
    for framework in plan.frameworks:
        sink.link_framework(framework)
    for library in plan.extra_libraries:
        sink.link_lib(library.name, library.kind)


__all__ = [
    "DIRECTIVE_PREFIX",
    "DirectiveSink",
    "TextDirectiveSink",
    "RecordingSink",
    "emit_plan",
]
