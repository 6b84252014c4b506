"""Link planning, directive emission and runtime library distribution."""

from sherpakit.link.names import extract_lib_names, lib_name_from_path
from sherpakit.link.planner import LinkLibrary, LinkPlan, LinkPlanner
from sherpakit.link.sink import (
    DirectiveSink,
    RecordingSink,
    TextDirectiveSink,
    emit_plan,
)
from sherpakit.link.distributor import RuntimeArtifactDistributor

__all__ = [
    "extract_lib_names",
    "lib_name_from_path",
    "LinkLibrary",
    "LinkPlan",
    "LinkPlanner",
    "DirectiveSink",
    "RecordingSink",
    "TextDirectiveSink",
    "emit_plan",
    "RuntimeArtifactDistributor",
]
