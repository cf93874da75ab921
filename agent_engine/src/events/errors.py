# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.


class EventLogError(Exception):
    """Base class for event log failures.

    These indicate a defect in the producer, not a recoverable condition: they
    are logged loudly and fail the run.
    """


class WorkflowRunNotFoundError(EventLogError):
    def __init__(self, run_id: str):
        self.run_id = run_id
        super().__init__(f"Workflow run not found: {run_id}")


class WorkflowStateError(EventLogError):
    """An illegal lifecycle transition, or any append after a terminal state."""


class EventOrderingError(EventLogError):
    """The event would break the single total order of the run's chain."""
