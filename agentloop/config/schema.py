"""
Configuration schema definitions.

AgentConfiguration is the immutable set of tunables supplied when a loop run
starts. It is a value object: build a new one instead of mutating it.
"""

from pydantic import BaseModel, ConfigDict, Field


class AgentConfiguration(BaseModel):
    """
    Runtime loop configuration.
    """

    model_config = ConfigDict(frozen=True)

    # Loop configuration
    max_steps: int = Field(default=10, ge=1, description="Maximum model requests per run")
    auto_execute_tools: bool = Field(
        default=True, description="Execute requested tools automatically"
    )

    # Runaway-loop guards
    max_duplicate_tool_calls: int = Field(
        default=2,
        ge=1,
        description="Identical (name, arguments) calls allowed before the run is stopped",
    )
    max_tool_calls_per_tool: int | None = Field(
        default=5,
        ge=1,
        description="Calls allowed per tool name regardless of arguments (None = unlimited)",
    )

    # Structured output
    max_decode_retries: int = Field(
        default=2, ge=0, description="Corrective retries when the final output fails to decode"
    )


__all__ = ["AgentConfiguration"]
