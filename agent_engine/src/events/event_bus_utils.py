# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Utility functions for working with the event bus."""

from ..types.event_types import EventType, Event


def format_event(event: Event, max_content_len: int = 80, prefix_width: int = 18) -> str:
    """One-line summary of an event, as printed by `log_to_stdout`."""

    def truncate(text: str, length: int = max_content_len) -> str:
        text = text.replace("\n", " ")
        return f"{text[:length]}..." if len(text) > length else text

    metadata = ""
    if event.type == EventType.WORKFLOW_STATE:
        content = event.metadata.get("state", "unknown")
        if event.content:
            content += f": {truncate(event.content)}"
    elif event.type == EventType.TOOL_CALL:
        name = event.metadata.get("tool_name", "unknown tool")
        content = f"{name}({truncate(event.metadata.get('arguments', ''), 60)})"
        metadata = event.metadata.get("tool_call_id", "")
    elif event.type == EventType.TOOL_CALL_RESULT:
        name = event.metadata.get("tool_name", "unknown tool")
        content = f"{name} -> {truncate(str(event.content))}"
    elif event.type == EventType.STATUS:
        content = truncate(str(event.content))
        metadata = event.metadata.get("level", "")
    else:
        content = truncate(str(event.content))

    prefix = event.type.value
    return f"{prefix:<{prefix_width}s} => {content}{' | ' + metadata if metadata else ''}"


async def log_to_stdout(event: Event):
    """Print a one-line summary of every event. Subscribe it to a run's channel."""
    print(format_event(event))
