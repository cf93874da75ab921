# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
The agents module defines the LLM-driven agents a workflow runs.

An agent is a class that composes an LLM's context and drives the
conversation: a system prompt with the agent's role, a first user message
(the core prompt) stating the task, then alternating assistant turns and tool
results until the assistant answers without requesting any tool.

The fields of an agent class are its inputs; its class variables describe
which tools it may use and how many turns it may take.
"""

from .base_agent import BaseAgent, AgentBudgetExceededError, agent_registry
from .implementations import CoderAgent, ReviewerAgent
