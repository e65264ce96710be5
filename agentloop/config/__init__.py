"""
Configuration for agentloop.

- Global settings from environment variables
- Per-run loop configuration
"""

from agentloop.config.settings import AgentLoopSettings, settings
from agentloop.config.schema import AgentConfiguration

__all__ = [
    "AgentLoopSettings",
    "settings",
    "AgentConfiguration",
]
