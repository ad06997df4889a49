from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from luna_assistant.core.enums import EntityLevel, WorkflowStage


class WorkflowState(BaseModel):
    """
    Progress of one hierarchical creation sequence (path -> lessons -> sections).

    Travels with the conversation: returned on every reply that leaves a
    sequence open and echoed back by the client on the next request, either
    top-level or inside an action button's payload.
    """
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True, extra="ignore")

    stage: WorkflowStage
    parent_level: EntityLevel
    parent_ids: List[str] = Field(default_factory=list)
    parent_title: Optional[str] = None
    # Levels still to be created below the parent, nearest first.
    remaining_levels: List[EntityLevel] = Field(default_factory=list)
    pending_children: List[str] = Field(default_factory=list)
    created_ids: List[str] = Field(default_factory=list)

    @property
    def parent_id(self) -> str | None:
        return self.parent_ids[0] if self.parent_ids else None

    @property
    def child_level(self) -> EntityLevel | None:
        return self.remaining_levels[0] if self.remaining_levels else None

    def dump(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")
