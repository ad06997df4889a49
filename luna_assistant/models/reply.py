from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from luna_assistant.models.workflow_state import WorkflowState


class Citation(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    url: Optional[str] = None


class ActionButton(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    action: str
    data: Dict[str, Any] = Field(default_factory=dict)
    style: Literal["primary", "secondary", "success"] = "secondary"


class RealTimeUpdate(BaseModel):
    """Notice for the client that an entity changed and its view should refresh."""
    model_config = ConfigDict(frozen=True)

    entity: Literal["baseClass", "path", "lesson", "section"]
    entity_id: str
    type: Literal["create", "update", "delete"]
    is_ai_generated: bool = True
    updated_data: Dict[str, Any] = Field(default_factory=dict)


class AssistantReply(BaseModel):
    """Terminal artifact of one orchestration pass."""
    model_config = ConfigDict(frozen=True)

    text: str
    citations: List[Citation] = Field(default_factory=list)
    action_buttons: List[ActionButton] = Field(default_factory=list)
    has_tool_results: bool = False
    tools_used: List[str] = Field(default_factory=list)
    is_outline: bool = False
    outline_data: Optional[Dict[str, Any]] = None
    real_time_updates: List[RealTimeUpdate] = Field(default_factory=list)
    workflow_state: Optional[WorkflowState] = None
