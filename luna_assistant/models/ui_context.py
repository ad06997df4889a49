from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class UserAction(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    component_id: str = Field("", validation_alias=AliasChoices("componentId", "component_id"))
    action_type: str = Field("", validation_alias=AliasChoices("actionType", "action_type"))


class UIComponent(BaseModel):
    """One registered on-screen component as serialized by the client."""
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    id: str
    type: str
    role: str = ""
    visible: bool = Field(True, validation_alias=AliasChoices("isVisible", "visible"))
    content: Dict[str, Any] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    state: Dict[str, Any] = Field(default_factory=dict)


class UIContextSnapshot(BaseModel):
    """Read-only picture of the user's screen for one request."""
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    route: str = ""
    focused_component_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("focusedComponentId", "focused", "focused_component_id")
    )
    last_user_action: Optional[UserAction] = Field(
        None, validation_alias=AliasChoices("lastUserAction", "last_user_action")
    )
    components: List[UIComponent] = Field(default_factory=list)

    def component(self, component_id: str) -> UIComponent | None:
        return next((c for c in self.components if c.id == component_id), None)
