import json
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from luna_assistant.exceptions import ToolErrorKind


class ToolInvocationRequest(BaseModel):
    """One tool call requested by the model in a single completion."""
    model_config = ConfigDict(frozen=True)

    invocation_id: str
    tool_name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    # Set when the model's argument string was not a JSON object.
    argument_error: Optional[str] = None
    raw_arguments: str = "{}"

    def to_openai(self) -> Dict[str, Any]:
        return {
            "id": self.invocation_id,
            "type": "function",
            "function": {"name": self.tool_name, "arguments": self.raw_arguments},
        }


class ToolFailure(BaseModel):
    model_config = ConfigDict(frozen=True)

    error_kind: ToolErrorKind
    message: str


class ToolExecutionResult(BaseModel):
    """Outcome of exactly one invocation: payload on success, failure otherwise."""
    model_config = ConfigDict(frozen=True)

    invocation_id: str
    tool_name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    payload: Optional[Any] = None
    failure: Optional[ToolFailure] = None

    @property
    def success(self) -> bool:
        return self.failure is None

    @classmethod
    def ok(cls, request: ToolInvocationRequest, payload: Any) -> "ToolExecutionResult":
        return cls(invocation_id=request.invocation_id, tool_name=request.tool_name,
                   arguments=request.arguments, payload=payload)

    @classmethod
    def failed(cls, request: ToolInvocationRequest, kind: ToolErrorKind, message: str) -> "ToolExecutionResult":
        return cls(invocation_id=request.invocation_id, tool_name=request.tool_name,
                   arguments=request.arguments, failure=ToolFailure(error_kind=kind, message=message))

    def to_tool_content(self) -> str:
        """JSON fed back to the model as the `tool` message body."""
        if self.failure is not None:
            body = {"success": False, "error": self.failure.error_kind.value, "message": self.failure.message}
        else:
            body = self.payload
        return json.dumps(body, default=str)


class Completion(BaseModel):
    """Either plain text or a list of tool calls, never both."""
    kind: Literal["text", "tool_calls"]
    content: str = ""
    calls: List[ToolInvocationRequest] = Field(default_factory=list)

    @classmethod
    def text(cls, content: str) -> "Completion":
        return cls(kind="text", content=content)

    @classmethod
    def tool_calls(cls, calls: List[ToolInvocationRequest], content: str = "") -> "Completion":
        return cls(kind="tool_calls", calls=calls, content=content)
