# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Container naming and the label set used for discovery and bulk cleanup."""

import re

OWNER_LABEL = "agent.owner"
REPO_LABEL = "agent.repo"
BRANCH_LABEL = "agent.branch"
WORKFLOW_RUN_LABEL = "agent.workflow-run"

_INVALID_NAME_CHARS = re.compile(r"[^a-zA-Z0-9_.-]")


def container_name_for_run(run_id: str, prefix: str = "agent") -> str:
    """A run-scoped name, so concurrent runs never race for the same name.

    Docker names must start with an alphanumeric character and may contain
    only ``[a-zA-Z0-9_.-]``; anything else is replaced with ``-``.
    """
    sanitized = _INVALID_NAME_CHARS.sub("-", f"{prefix}-{run_id}")
    if not sanitized[0].isalnum():
        sanitized = f"c{sanitized}"
    return sanitized


def container_labels(
    owner: str | None = None,
    repo: str | None = None,
    branch: str | None = None,
    run_id: str | None = None,
) -> dict[str, str]:
    labels = {
        OWNER_LABEL: owner,
        REPO_LABEL: repo,
        BRANCH_LABEL: branch,
        WORKFLOW_RUN_LABEL: run_id,
    }
    return {key: value for key, value in labels.items() if value}
