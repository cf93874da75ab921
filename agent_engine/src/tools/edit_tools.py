# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Context-anchored patch editing.

A patch is a list of hunks. Each hunk may open with one or more `@@ <line>`
markers naming lines (a class or function header, say) that must appear, in
order, before the change. The hunk body then holds context lines (prefixed with
a space, or unprefixed), removed lines (`-`) and added lines (`+`). Context and
removed lines together must match a contiguous block of the file; that block is
replaced by the context and added lines. No line numbers are involved.

Matching tries the exact text first, then ignores trailing whitespace, then
ignores all surrounding whitespace. Hunks are applied in file order: each one is
searched for after the end of the previous one.
"""
import logging

from dataclasses import dataclass, field
from typing import Callable

from pydantic import Field

from .base_tool import BaseTool
from .file_tools import PATH_DESCRIPTION
from ..environment.errors import PathNotFoundError
from ..types.tool_types import ToolResult

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class PatchApplyError(Exception):
    """A patch could not be parsed or its context was not found in the file."""


@dataclass
class PatchHunk:
    markers: list[str] = field(default_factory=list)
    # (op, text) pairs where op is one of " ", "-", "+"
    lines: list[tuple[str, str]] = field(default_factory=list)

    @property
    def old_lines(self) -> list[str]:
        return [text for op, text in self.lines if op != "+"]

    @property
    def has_changes(self) -> bool:
        return any(op != " " for op, _ in self.lines)


def _trim_blank_context(lines: list[tuple[str, str]]) -> list[tuple[str, str]]:
    while lines and lines[0] == (" ", ""):
        lines = lines[1:]
    while lines and lines[-1] == (" ", ""):
        lines = lines[:-1]
    return lines


def parse_patch(patch: str) -> list[PatchHunk]:
    """Split a patch string into hunks.

    Raises:
        PatchApplyError: if the patch holds no added or removed lines.
    """
    hunks: list[PatchHunk] = []
    current: PatchHunk | None = None

    for raw in patch.splitlines():
        if raw.startswith("***"):
            continue
        if raw.startswith("@@"):
            if current is None or current.lines:
                current = PatchHunk()
                hunks.append(current)
            marker = raw[2:].strip()
            if marker:
                current.markers.append(marker)
            continue

        if current is None:
            current = PatchHunk()
            hunks.append(current)
        if raw.startswith(("-", "+")):
            current.lines.append((raw[0], raw[1:]))
        elif raw.startswith(" "):
            current.lines.append((" ", raw[1:]))
        else:
            current.lines.append((" ", raw))

    for hunk in hunks:
        hunk.lines = _trim_blank_context(hunk.lines)
    hunks = [hunk for hunk in hunks if hunk.has_changes]
    if not hunks:
        raise PatchApplyError("Patch contains no added or removed lines")
    return hunks


_NORMALISERS: list[Callable[[str], str]] = [lambda line: line, str.rstrip, str.strip]


def find_block(lines: list[str], block: list[str], start: int = 0) -> int | None:
    """Index of the first occurrence of `block` in `lines` at or after `start`."""
    if not block:
        return start
    for normalise in _NORMALISERS:
        target = [normalise(line) for line in block]
        for i in range(start, len(lines) - len(block) + 1):
            if all(normalise(lines[i + j]) == target[j] for j in range(len(block))):
                return i
    return None


def apply_hunks(content: str, hunks: list[PatchHunk]) -> str:
    """Apply `hunks` to `content` in order and return the new content.

    Raises:
        PatchApplyError: naming the first marker or context block that could
            not be located.
    """
    lines = content.split("\n")
    cursor = 0

    for number, hunk in enumerate(hunks, 1):
        search_from = cursor
        for marker in hunk.markers:
            index = next(
                (i for i in range(search_from, len(lines)) if lines[i].strip() == marker),
                None,
            )
            if index is None:
                raise PatchApplyError(f"Hunk {number}: marker '{marker}' not found")
            search_from = index + 1

        old = hunk.old_lines
        start = find_block(lines, old, search_from)
        if start is None:
            expected = "\n".join(old)
            raise PatchApplyError(f"Hunk {number}: could not find these lines:\n{expected}")

        replacement: list[str] = []
        position = start
        for op, text in hunk.lines:
            if op == " ":
                # Keep the file's own text for context lines
                replacement.append(lines[position])
                position += 1
            elif op == "-":
                position += 1
            else:
                replacement.append(text)

        lines[start:position] = replacement
        cursor = start + len(replacement)

    return "\n".join(lines)


class ApplyPatch(BaseTool):
    TOOL_NAME = "apply_patch"
    TOOL_DESCRIPTION = """Edit one existing file by applying a context-anchored patch.

Prefer this to write_file for small changes to large files. The patch has no
file headers and no line numbers. Each change is a hunk:
- optional `@@ <line>` markers naming enclosing lines, e.g. `@@ class Parser`
  then `@@     def parse(self):`, to disambiguate repeated code
- context lines, starting with a space, copied from the file as they are now
- removed lines starting with '-' and added lines starting with '+'

Show about 3 lines of context above and below each change. Hunks must appear in
the order they occur in the file. Example:

@@ class Parser
@@     def parse(self):
         tokens = self.lex(text)
-        return tokens
+        return self.build(tokens)

The patch is applied completely or not at all. To create a file use write_file.
"""

    path: str = Field(..., description=PATH_DESCRIPTION)
    patch: str = Field(..., description="The patch to apply to this one file.")

    async def run(self) -> ToolResult:
        try:
            content = await self.environment.read_file(self.path)
        except PathNotFoundError as e:
            return ToolResult.failure(self.TOOL_NAME, f"{e}. Use write_file to create new files.")

        try:
            hunks = parse_patch(self.patch)
            new_content = apply_hunks(content, hunks)
        except PatchApplyError as e:
            return ToolResult.failure(
                self.TOOL_NAME,
                f"Patch not applied to {self.path}: {e}. Read the file again and retry with its current content.",
            )

        await self.environment.write_file(self.path, new_content)
        logger.info(f"Applied {len(hunks)} hunk(s) to {self.path}")
        return ToolResult(
            tool_name=self.TOOL_NAME,
            success=True,
            output=f"Applied {len(hunks)} hunk(s) to {self.path}",
        )
