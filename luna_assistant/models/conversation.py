from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class ConversationTurn(BaseModel):
    """A single message in the model conversation."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    role: Literal["user", "assistant", "tool", "system"]
    content: str = ""
    tool_invocation_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("toolInvocationId", "tool_call_id", "tool_invocation_id")
    )
    # Raw tool_calls payload on an assistant turn that requested tools.
    tool_calls: Optional[List[Dict[str, Any]]] = None

    def to_openai(self) -> Dict[str, Any]:
        msg: Dict[str, Any] = {"role": self.role, "content": self.content}
        if self.role == "tool":
            msg["tool_call_id"] = self.tool_invocation_id
        if self.tool_calls:
            msg["tool_calls"] = self.tool_calls
            msg["content"] = self.content or None
        return msg
