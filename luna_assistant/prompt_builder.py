import json
from typing import Any, Dict, List, Optional, Sequence

from luna_assistant.context_compressor import CompressedContext, truncate
from luna_assistant.core.enums import Persona, WorkflowStage
from luna_assistant.models.conversation import ConversationTurn
from luna_assistant.models.workflow_state import WorkflowState
from luna_assistant import prompts

HISTORY_TURNS = 6
HISTORY_PREVIEW = 200


def persona_block(persona: Optional[str]) -> str:
    key = Persona.parse(persona)
    if key is None:
        return prompts.GENERIC_PERSONA.format(persona=persona)
    return prompts.PERSONA_BLOCKS[key]


def workflow_block(state: Optional[WorkflowState]) -> str:
    if state is None or state.child_level is None:
        return ""
    child = state.child_level
    listing = f" ({', '.join(state.pending_children)})" if state.pending_children else ""
    fields = dict(
        parent=state.parent_level.value,
        children=child.plural,
        child_tool=child.create_tool,
        parent_arg=child.parent_arg,
        parent_id=", ".join(state.parent_ids),
        title=state.parent_title or "",
        listing=listing,
    )
    template = {
        WorkflowStage.PARENT_PENDING: prompts.WORKFLOW_PENDING,
        WorkflowStage.AWAITING_CONFIRMATION: prompts.WORKFLOW_AWAITING,
        WorkflowStage.CONFIRMED: prompts.WORKFLOW_CONFIRMED,
    }[state.stage]
    return template.format(**fields)


def history_block(history: Sequence[ConversationTurn]) -> str:
    recent = [t for t in history if t.role in ("user", "assistant")][-HISTORY_TURNS:]
    if not recent:
        return "# Recent Conversation\nNo previous conversation: this is the user's first message."
    lines = [f"**{'User' if t.role == 'user' else 'Luna'}**: {truncate(t.content, HISTORY_PREVIEW)}" for t in recent]
    return prompts.HISTORY_HEADER + "\n\n" + "\n".join(lines)


def button_block(button_data: Optional[Dict[str, Any]]) -> str:
    if not button_data:
        return ""
    return prompts.BUTTON_CONTEXT.format(
        action=button_data.get("buttonAction") or button_data.get("action") or "unknown",
        button_id=button_data.get("buttonId") or "unknown",
        payload=json.dumps(button_data, indent=2, sort_keys=True, default=str),
    )


def profile_block(profile: Optional[Dict[str, Any]]) -> str:
    if not profile or not profile.get("first_name"):
        return ""
    role = profile.get("role")
    suffix = f", a {role}" if role in ("student", "teacher") else ""
    return prompts.PERSONAL_CONTEXT.format(first_name=profile["first_name"], role_suffix=suffix)


def build_system_prompt(
    compressed: CompressedContext,
    persona: Optional[str],
    message: str,
    history: Sequence[ConversationTurn] = (),
    button_data: Optional[Dict[str, Any]] = None,
    workflow_state: Optional[WorkflowState] = None,
    user_profile: Optional[Dict[str, Any]] = None,
) -> ConversationTurn:
    """Assemble the single system message for the first completion. Pure and deterministic."""
    sections: List[str] = [
        prompts.PREAMBLE,
        profile_block(user_profile),
        "# Current UI Context\n" + compressed.text,
        history_block(history),
        "## User Role\n" + prompts.ROLE_GUIDANCE[compressed.interface_role],
        prompts.ASSESSMENT_RULES if compressed.has_assessment else "",
        f"## Persona: {persona or Persona.LUNA_CHAT.value}\n" + persona_block(persona),
        prompts.ID_RULES,
        prompts.WORKFLOW_RULES if compressed.interface_role != "student" else "",
        workflow_block(workflow_state),
        f'# User Message\n"{message}"',
        button_block(button_data),
    ]
    return ConversationTurn(role="system", content="\n\n".join(s for s in sections if s))
