from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from luna_assistant.models.ui_context import UIContextSnapshot

if TYPE_CHECKING:
    from luna_assistant.core.llm import ModelGateway
    from luna_assistant.tools.backend import BackendClient


@dataclass
class ToolContext:
    """Per-request handles passed to every tool handler."""
    backend: "BackendClient"
    snapshot: UIContextSnapshot = field(default_factory=UIContextSnapshot)
    gateway: Optional["ModelGateway"] = None
    supabase: Any = None
    session_id: Optional[str] = None
    user_id: Optional[str] = None
