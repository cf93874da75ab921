# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Relative path validation shared by every environment.

Every relative path handed to an environment goes through
`validate_relative_path` before it is joined to the host root or the container
mount, so the same rules hold whichever backend executes the operation.
"""

import re

from pathlib import Path, PurePosixPath

from .errors import PathValidationError

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_DRIVE_PREFIX = re.compile(r"^[A-Za-z]:")


def validate_relative_path(path: str) -> str:
    """Return the normalised form of `path`, or raise PathValidationError.

    Rejected: non-strings, empty paths, control characters, backslashes,
    absolute paths (including drive letters), and any segment that is empty or
    made only of dots (``""``, ``.``, ``..``, ...).
    """
    if not isinstance(path, str):
        raise PathValidationError(path, "path must be a string")
    if path == "":
        raise PathValidationError(path, "path must not be empty")
    if _CONTROL_CHARS.search(path):
        raise PathValidationError(path, "path contains control characters")
    if "\\" in path:
        raise PathValidationError(path, "path must use '/' as separator")
    if path.startswith("/") or _DRIVE_PREFIX.match(path):
        raise PathValidationError(path, "path must be relative")

    segments = path.split("/")
    for segment in segments:
        if segment == "":
            raise PathValidationError(path, "path contains an empty segment")
        if set(segment) == {"."}:
            if segment == "..":
                raise PathValidationError(path, "path may not contain '..' segments")
            raise PathValidationError(path, f"path may not contain {segment!r} segments")

    return "/".join(segments)


def validate_optional_cwd(cwd: str | None) -> str | None:
    """Working directories are relative paths too; None means the root."""
    if cwd is None or cwd in ("", "."):
        return None
    return validate_relative_path(cwd)


def join_host_path(root: Path, relative: str) -> Path:
    """Join a validated relative path under a host root.

    Symlinks inside the root that point outside of it are refused too.
    """
    relative = validate_relative_path(relative)
    root = root.resolve()
    full = (root / relative).resolve()
    if full != root and root not in full.parents:
        raise PathValidationError(relative, "path escapes the workspace root")
    return root / relative


def join_container_path(mount: str, relative: str) -> str:
    relative = validate_relative_path(relative)
    return str(PurePosixPath(mount) / relative)
