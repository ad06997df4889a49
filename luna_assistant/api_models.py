from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from luna_assistant.models.conversation import ConversationTurn
from luna_assistant.models.reply import ActionButton, AssistantReply, Citation
from luna_assistant.models.ui_context import UIContextSnapshot
from luna_assistant.models.workflow_state import WorkflowState


# --- Request Models ---

class ChatRequest(BaseModel):
    """Body of POST /api/luna/chat."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    message: str
    context: UIContextSnapshot
    messages: List[ConversationTurn] = Field(
        default_factory=list, validation_alias=AliasChoices("messages", "history")
    )
    persona: str = "lunaChat"
    button_data: Optional[Dict[str, Any]] = Field(None, validation_alias=AliasChoices("buttonData", "button_data"))
    workflow_state: Optional[WorkflowState] = Field(
        None, validation_alias=AliasChoices("workflowState", "workflow_state")
    )

    @field_validator("message")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("message must not be empty")
        return v

    @field_validator("messages")
    @classmethod
    def _client_roles_only(cls, v: List[ConversationTurn]) -> List[ConversationTurn]:
        if any(t.role not in ("user", "assistant") for t in v):
            raise ValueError("history may only contain user and assistant messages")
        # tool_calls without their tool replies are rejected by the provider
        return [t.model_copy(update={"tool_calls": None}) if t.tool_calls else t for t in v]

    def resolved_workflow_state(self) -> Optional[WorkflowState]:
        """Top-level state wins; otherwise the state echoed inside a clicked button's payload."""
        if self.workflow_state is not None:
            return self.workflow_state
        raw = (self.button_data or {}).get("workflowState")
        return WorkflowState.model_validate(raw) if raw else None


# --- Response Models ---

class RealTimeUpdateOut(BaseModel):
    entity: str
    entity_id: str = Field(serialization_alias="entityId")
    type: Literal["create", "update", "delete"]
    is_ai_generated: bool = Field(True, serialization_alias="isAIGenerated")
    updated_data: Dict[str, Any] = Field(default_factory=dict, serialization_alias="updatedData")


class ChatResponse(BaseModel):
    response: str
    citations: List[Citation] = Field(default_factory=list)
    action_buttons: List[ActionButton] = Field(default_factory=list, serialization_alias="actionButtons")
    has_tool_results: bool = Field(False, serialization_alias="hasToolResults")
    tools_used: List[str] = Field(default_factory=list, serialization_alias="toolsUsed")
    is_outline: Optional[bool] = Field(None, serialization_alias="isOutline")
    outline_data: Optional[Dict[str, Any]] = Field(None, serialization_alias="outlineData")
    real_time_updates: List[RealTimeUpdateOut] = Field(default_factory=list, serialization_alias="realTimeUpdates")
    workflow_state: Optional[Dict[str, Any]] = Field(None, serialization_alias="workflowState")

    @classmethod
    def from_reply(cls, reply: AssistantReply) -> "ChatResponse":
        return cls(
            response=reply.text,
            citations=reply.citations,
            action_buttons=reply.action_buttons,
            has_tool_results=reply.has_tool_results,
            tools_used=reply.tools_used,
            is_outline=reply.is_outline or None,
            outline_data=reply.outline_data,
            real_time_updates=[RealTimeUpdateOut(**u.model_dump()) for u in reply.real_time_updates],
            workflow_state=reply.workflow_state.dump() if reply.workflow_state else None,
        )

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class ErrorResponse(BaseModel):
    """Response indicating an error occurred."""
    response_type: Literal["error"] = "error"
    message: str
    error_code: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
