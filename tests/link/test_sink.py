"""Tests for build directive sinks."""

import io
from pathlib import Path

from sherpakit.link.planner import DYLIB, STATIC, LinkLibrary, LinkPlan
from sherpakit.link.sink import (
    DIRECTIVE_PREFIX,
    RecordingSink,
    TextDirectiveSink,
    emit_plan,
)


class TestTextDirectiveSink:
    """Tests for TextDirectiveSink."""

    def test_lines(self):
        stream = io.StringIO()
        sink = TextDirectiveSink(stream)

        sink.link_search(Path("/a/lib"))
        sink.link_lib("sherpa-onnx-c-api", DYLIB)
        sink.link_framework("CoreML")
        sink.rerun_if_env_changed("SHERPA_LIB_PATH")
        sink.warning("fallback to manual build")

        assert stream.getvalue().splitlines() == [
            f"{DIRECTIVE_PREFIX}link-search={Path('/a/lib')}",
            f"{DIRECTIVE_PREFIX}link-lib=dylib=sherpa-onnx-c-api",
            f"{DIRECTIVE_PREFIX}link-lib=framework=CoreML",
            f"{DIRECTIVE_PREFIX}rerun-if-env-changed=SHERPA_LIB_PATH",
            f"{DIRECTIVE_PREFIX}warning=fallback to manual build",
        ]

    def test_custom_prefix(self):
        stream = io.StringIO()
        TextDirectiveSink(stream, prefix="cargo:").link_lib("foo", STATIC)
        assert stream.getvalue() == "cargo:link-lib=static=foo\n"

    def test_defaults_to_stdout(self, capsys):
        TextDirectiveSink().warning("hello")
        assert capsys.readouterr().out == f"{DIRECTIVE_PREFIX}warning=hello\n"


class TestEmitPlan:
    """Tests for emit_plan."""

    def test_order(self):
        """Test search paths, libraries, frameworks then extras."""
        plan = LinkPlan(
            search_paths=[Path("/lib")],
            libraries=[LinkLibrary("a", STATIC), LinkLibrary("b", STATIC)],
            frameworks=["Foundation"],
            extra_libraries=[LinkLibrary("c++", DYLIB)],
        )
        sink = RecordingSink()

        emit_plan(plan, sink)

        assert sink.directives == [
            ("link-search", str(Path("/lib"))),
            ("link-lib", "static=a"),
            ("link-lib", "static=b"),
            ("link-lib", "framework=Foundation"),
            ("link-lib", "dylib=c++"),
        ]
        assert sink.values("link-search") == [str(Path("/lib"))]
        assert sink.lines()[0] == f"{DIRECTIVE_PREFIX}link-search={Path('/lib')}"
