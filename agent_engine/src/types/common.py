# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from datetime import datetime, timezone
from pydantic import BaseModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ExecResult(BaseModel):
    """The buffered outcome of a shell command.

    A non-zero exit code is a normal result, not an error; callers inspect
    `exit_code` themselves.
    """

    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def to_dict(self) -> dict:
        return dict(stdout=self.stdout, stderr=self.stderr, exit_code=self.exit_code)
