"""Business function result and definition schemas."""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

FUNCTION_NOT_FOUND = "FUNCTION_NOT_FOUND"
FUNCTION_EXECUTION_FAILED = "FUNCTION_EXECUTION_FAILED"


class FunctionCallResult(BaseModel):
    """Outcome of one business function invocation."""

    model_config = ConfigDict(frozen=True)

    success: bool
    result: str | None = None
    error: str | None = None
    error_code: str | None = None
    data: dict[str, Any] | None = None
    ui_component: str | None = None

    @classmethod
    def ok(
        cls,
        result: str,
        data: dict[str, Any] | None = None,
        ui_component: str | None = None,
    ) -> "FunctionCallResult":
        return cls(success=True, result=result, data=data, ui_component=ui_component)

    @classmethod
    def fail(cls, error: str, code: str | None = None) -> "FunctionCallResult":
        return cls(success=False, error=error, error_code=code)

    @classmethod
    def not_found(cls, name: str) -> "FunctionCallResult":
        return cls.fail(f"function not found: {name}", code=FUNCTION_NOT_FOUND)

    def to_content(self) -> str:
        """Compact JSON representation fed back to the AI provider."""
        return json.dumps(
            self.model_dump(exclude_none=True), ensure_ascii=False, default=str
        )


class FunctionDefinition(BaseModel):
    """Provider-facing description of a business function."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    parameters: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}, "required": []}
    )


class QuickPrompt(BaseModel):
    """Suggested prompt derived from a registered business function."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    content: str
    description: str
    category: str
    icon: str
    order: int


class ToolInfo(BaseModel):
    """A tool offered by one of the registered tool servers."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    input_schema: dict[str, Any]
    server: str

    def definition(self) -> FunctionDefinition:
        return FunctionDefinition(
            name=self.name, description=self.description, parameters=self.input_schema
        )
