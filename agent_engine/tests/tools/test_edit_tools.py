# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import json

import pytest

from agent_engine.src.environment import HostEnvironment
from agent_engine.src.tools import coding_toolkit
from agent_engine.src.tools.base_tool import ToolContext
from agent_engine.src.tools.edit_tools import (
    PatchApplyError,
    apply_hunks,
    find_block,
    parse_patch,
)
from agent_engine.src.tools.registry import ToolRegistry
from agent_engine.src.types.llm_types import ToolCallContent

TWO_CLASSES = "\n".join(
    [
        "class A:",
        "    def run(self):",
        "        x = 1",
        "        return x",
        "",
        "class B:",
        "    def run(self):",
        "        x = 1",
        "        return x",
        "",
    ]
)


@pytest.fixture
def registry(tmp_path):
    return ToolRegistry(ToolContext(environment=HostEnvironment(tmp_path)), coding_toolkit)


async def dispatch(registry, **arguments):
    return await registry.dispatch(
        ToolCallContent(call_id="c1", tool_name="apply_patch", arguments=json.dumps(arguments))
    )


class TestApplyPatchTool:
    async def test_markers_pick_the_right_block(self, registry, tmp_path):
        (tmp_path / "mod.py").write_text(TWO_CLASSES)
        patch = "\n".join(
            [
                "@@ class B:",
                "@@     def run(self):",
                "         x = 1",
                "-        return x",
                "+        return x + 1",
            ]
        )

        result = await dispatch(registry, path="mod.py", patch=patch)

        assert result.success
        assert result.output == "Applied 1 hunk(s) to mod.py"
        lines = (tmp_path / "mod.py").read_text().split("\n")
        assert lines[3] == "        return x"
        assert lines[8] == "        return x + 1"
        assert len(lines) == len(TWO_CLASSES.split("\n"))

    async def test_context_matches_despite_indentation(self, registry, tmp_path):
        (tmp_path / "conf.py").write_text("def f():\n    a = 1\n    b = 2\n    c = 3\n")
        patch = "\n".join([" a = 1", "-b = 2", "+    b = 20", " c = 3"])

        result = await dispatch(registry, path="conf.py", patch=patch)

        assert result.success
        assert (tmp_path / "conf.py").read_text() == "def f():\n    a = 1\n    b = 20\n    c = 3\n"

    async def test_unmatched_context_leaves_file_untouched(self, registry, tmp_path):
        (tmp_path / "mod.py").write_text(TWO_CLASSES)
        patch = "\n".join([" def missing(self):", "-    pass", "+    return None"])

        result = await dispatch(registry, path="mod.py", patch=patch)

        assert not result.success
        assert result.errors.startswith("Patch not applied to mod.py: Hunk 1: could not find")
        assert (tmp_path / "mod.py").read_text() == TWO_CLASSES

    async def test_later_failing_hunk_applies_nothing(self, registry, tmp_path):
        (tmp_path / "mod.py").write_text(TWO_CLASSES)
        patch = "\n".join(
            [
                "@@ class A:",
                "-        x = 1",
                "+        x = 2",
                "@@ class C:",
                "-        x = 1",
                "+        x = 3",
            ]
        )

        result = await dispatch(registry, path="mod.py", patch=patch)

        assert not result.success
        assert "marker 'class C:' not found" in result.errors
        assert (tmp_path / "mod.py").read_text() == TWO_CLASSES

    async def test_missing_file(self, registry):
        result = await dispatch(registry, path="nope.py", patch="-a\n+b")
        assert not result.success
        assert result.errors.startswith("File not found: nope.py")

    async def test_patch_without_changes(self, registry, tmp_path):
        (tmp_path / "mod.py").write_text(TWO_CLASSES)
        result = await dispatch(registry, path="mod.py", patch="@@ class A:\n    def run(self):")
        assert not result.success
        assert "no added or removed lines" in result.errors


class TestPatchParsing:
    def test_hunks_split_on_markers(self):
        hunks = parse_patch("*** Begin Patch\n@@ class A:\n-a\n+b\n\n@@\n c\n-d\n*** End Patch")

        assert [h.markers for h in hunks] == [["class A:"], []]
        assert hunks[0].lines == [("-", "a"), ("+", "b")]
        assert hunks[1].lines == [(" ", "c"), ("-", "d")]

    def test_hunks_apply_in_file_order(self):
        content = "x\ny\nx\ny\n"
        hunks = parse_patch(" x\n-y\n+first\n@@\n x\n-y\n+second")

        assert apply_hunks(content, hunks) == "x\nfirst\nx\nsecond\n"

    def test_pure_insertion_after_marker(self):
        hunks = parse_patch("@@ def f():\n+    pass")
        assert apply_hunks("def f():\nrest", hunks) == "def f():\n    pass\nrest"

    def test_exact_match_is_preferred(self):
        lines = ["  value", "value"]
        assert find_block(lines, ["value"]) == 1
        assert find_block(lines, ["   value"]) == 0
        assert find_block(lines, ["other"]) is None

    def test_removed_line_must_be_present(self):
        with pytest.raises(PatchApplyError, match="could not find"):
            apply_hunks("a\nb\n", parse_patch(" a\n-c"))
