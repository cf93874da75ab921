# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import logging

from typing import ClassVar
from dataclasses import dataclass
from pydantic import PrivateAttr

from .code_host import CodeHostPort
from ..environment import Environment
from ..types.llm_types import ToolSchema
from ..types.tool_types import ToolInterface
from ..types.workflow_types import RepositoryRef

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


@dataclass
class ToolContext:
    """Everything a tool handler may touch during one workflow run.

    A context (and so its environment) belongs to exactly one run.
    """

    environment: Environment
    code_host: CodeHostPort | None = None
    repository: RepositoryRef | None = None
    issue_number: int | None = None
    base_branch: str = "main"


# Every concrete tool class, by name. A run only ever sees the subset it
# registers in its own ToolRegistry.
tool_registry: dict[str, type["BaseTool"]] = {}


class BaseTool(ToolInterface):
    """Abstract base class for all tools.

    The pydantic fields of a subclass are the tool's arguments; their JSON
    schema is what the model is shown.
    """

    TOOL_NAME: ClassVar[str]
    TOOL_DESCRIPTION: ClassVar[str]

    _context: ToolContext = PrivateAttr()

    def __init__(self, context: ToolContext, **data):
        super().__init__(**data)
        self._context = context

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        # Intermediate base classes don't define their own name
        if "TOOL_NAME" in cls.__dict__:
            tool_registry[cls.TOOL_NAME] = cls

    @property
    def environment(self) -> Environment:
        return self._context.environment

    @classmethod
    def to_schema(cls) -> ToolSchema:
        parameters = cls.model_json_schema()
        parameters.pop("title", None)
        parameters.setdefault("properties", {})
        return ToolSchema(
            name=cls.TOOL_NAME,
            description=cls.TOOL_DESCRIPTION.strip(),
            parameters=parameters,
        )
