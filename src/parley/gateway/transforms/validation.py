"""Pydantic models for Anthropic Messages API request validation.

These models check the shape of an incoming request body before any
translation happens. Unknown fields are allowed and ignored.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from ..errors import InvalidRequest


class Message(BaseModel):
    """A message in the conversation."""

    model_config = ConfigDict(extra="allow")

    role: Literal["user", "assistant"]
    content: str | list[dict[str, Any]]

    @field_validator("content", mode="before")
    @classmethod
    def validate_content(cls, v: Any) -> Any:
        """Reject null and empty-string content.

        An empty block list is accepted; it translates to no message.
        """
        if v is None or v == "":
            raise ValueError("each message must have content")
        return v


class ToolDefinition(BaseModel):
    """Definition of an available tool."""

    model_config = ConfigDict(extra="allow")

    name: str
    description: str | None = None
    input_schema: dict[str, Any] = {}

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate tool name format."""
        if not v or not v.strip():
            raise ValueError("tool name cannot be empty")
        return v


class MessagesRequest(BaseModel):
    """Anthropic Messages API request body."""

    model_config = ConfigDict(extra="allow")

    model: str
    max_tokens: int
    messages: list[Message]
    system: str | list[dict[str, Any]] | None = None
    tools: list[ToolDefinition] | None = None
    tool_choice: str | dict[str, Any] | None = None
    stream: bool | None = None
    temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = None
    stop_sequences: list[str] | None = None
    metadata: dict[str, Any] | None = None

    @field_validator("model")
    @classmethod
    def validate_model(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("model parameter is required")
        return v

    @field_validator("max_tokens")
    @classmethod
    def validate_max_tokens(cls, v: int) -> int:
        """Validate max_tokens is positive."""
        if v <= 0:
            raise ValueError("max_tokens must be positive")
        return v

    @field_validator("messages")
    @classmethod
    def validate_messages(cls, v: list[Message]) -> list[Message]:
        """Validate messages list is not empty."""
        if not v:
            raise ValueError("messages must be a non-empty array")
        return v


def validate_request(body: Any) -> list[str]:
    """Validate an Anthropic Messages API request body.

    Args:
        body: The decoded request body

    Returns:
        List of validation error messages (empty if valid)
    """
    if not isinstance(body, dict):
        return ["request body must be a JSON object"]

    try:
        MessagesRequest.model_validate(body)
    except ValidationError as e:
        errors: list[str] = []
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"])
            message = error["msg"].removeprefix("Value error, ")
            errors.append(f"{location}: {message}" if location else message)
        return errors
    return []


def ensure_valid_request(body: Any) -> None:
    """Raise InvalidRequest if ``body`` fails validation."""
    errors = validate_request(body)
    if errors:
        raise InvalidRequest("; ".join(errors))
