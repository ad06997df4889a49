"""
Workflow guard for hierarchical creation (path -> lessons -> sections).

Three steps per request:
  begin()   - reconcile the incoming WorkflowState with the new user message
  review()  - decide, before dispatch, which tool invocations may run
  advance() - fold successful creations back into the state for the reply
"""
import logging
import re
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Set

from luna_assistant.core.enums import EntityLevel, WorkflowStage
from luna_assistant.models.tool_calls import ToolExecutionResult, ToolInvocationRequest
from luna_assistant.models.workflow_state import WorkflowState

logger = logging.getLogger(__name__)

CONFIRM_ACTIONS = {"confirm_workflow", "yes"}
DECLINE_ACTIONS = {"decline_workflow", "no"}

_AFFIRMATIVE = re.compile(
    r"^\s*(yes|yeah|yep|yup|sure|ok(ay)?|please( do)?|go ahead|do it|sounds good|confirm(ed)?|proceed|let'?s do it)\b",
    re.I,
)
_NEGATIVE = re.compile(r"^\s*(no|nope|not now|cancel|stop|don'?t|never ?mind|skip)\b", re.I)
_VERB = r"\b(create|add|build|make|set up|generate)\b"
_QUOTED = re.compile(r"['\"‘“]([^'\"’”]+)['\"’”]")
_NAMED = re.compile(r"\b(?:called|named|titled)\s+([A-Z][\w\- ]*?)(?=\s+(?:with|and|that|including|containing)\b|[,.]|$)")

# Tool name -> level it creates
CREATE_TOOLS = {level.create_tool: level for level in EntityLevel}
# Arguments that carry entity identifiers
ENTITY_ID_ARGS = ("baseClassId", "pathId", "lessonId", "sectionId", "parentId", "orderedIds")
READ_ONLY_TOOLS = {"search", "fetchBaseClassStructure", "checkJobStatus", "uiAction", "generateCourseOutline"}
MIN_ID_LEN = 8


def is_affirmative(message: str, button_data: Optional[Dict[str, Any]] = None) -> bool:
    action = (button_data or {}).get("buttonAction") or (button_data or {}).get("action")
    if action in CONFIRM_ACTIONS:
        return True
    return bool(_AFFIRMATIVE.match(message or ""))


def is_negative(message: str, button_data: Optional[Dict[str, Any]] = None) -> bool:
    action = (button_data or {}).get("buttonAction") or (button_data or {}).get("action")
    if action in DECLINE_ACTIONS:
        return True
    return bool(_NEGATIVE.match(message or ""))


def detect_hierarchical_ask(message: str) -> Optional[WorkflowState]:
    """A create request naming a parent followed by its children, e.g. 'a path with three lessons'."""
    text = message or ""
    for parent in (EntityLevel.PATH, EntityLevel.LESSON):
        child = parent.child
        m = re.search(rf"{_VERB}.*?\b{parent.value}\b(.*?)\b{child.plural}\b(.*)", text, re.I | re.S)
        if not m:
            continue
        remaining = [child]
        if parent is EntityLevel.PATH and re.search(r"\bsections\b", m.group(3), re.I):
            remaining.append(EntityLevel.SECTION)
        title = _first_title(text[:m.start(3)])
        children = [t for t in _QUOTED.findall(m.group(3)) if t != title]
        return WorkflowState(
            stage=WorkflowStage.PARENT_PENDING,
            parent_level=parent,
            parent_title=title,
            remaining_levels=remaining,
            pending_children=children,
        )
    return None


def _first_title(fragment: str) -> Optional[str]:
    quoted = _QUOTED.search(fragment)
    if quoted:
        return quoted.group(1).strip()
    named = _NAMED.search(fragment)
    return named.group(1).strip() if named else None


def _mentions_child(message: str, state: WorkflowState) -> bool:
    child = state.child_level
    return bool(child and re.search(rf"{_VERB}.*\b{child.value}s?\b", message or "", re.I | re.S))


class WorkflowGuard:
    """Stateless rules; all state lives in the WorkflowState value passed in and out."""

    def __init__(self, strict_provenance: bool = False):
        self.strict_provenance = strict_provenance

    # ------------------------------------------------------------------ #
    def begin(
        self,
        message: str,
        state: Optional[WorkflowState],
        button_data: Optional[Dict[str, Any]] = None,
    ) -> Optional[WorkflowState]:
        fresh = detect_hierarchical_ask(message)
        if state is None:
            return fresh
        if is_negative(message, button_data):
            logger.info("Workflow declined by user; discarding %s state", state.parent_level.value)
            return None
        if fresh is not None:
            # a message naming a new parent never confirms the previous one
            logger.info("New %s request replaces the %s workflow", fresh.parent_level.value, state.parent_level.value)
            return fresh
        if state.stage is WorkflowStage.PARENT_PENDING:
            return state
        # awaiting confirmation, or confirmed and continuing
        if is_affirmative(message, button_data) or _mentions_child(message, state):
            return state.model_copy(update={"stage": WorkflowStage.CONFIRMED})
        logger.info("User moved on; discarding %s workflow", state.parent_level.value)
        return None

    # ------------------------------------------------------------------ #
    def review(
        self,
        invocations: Sequence[ToolInvocationRequest],
        state: Optional[WorkflowState],
        known_ids: Iterable[str],
    ) -> Dict[str, str]:
        """Map of invocation_id -> reason for every invocation that must not run."""
        trusted: Set[str] = set(known_ids)
        if state is not None:
            trusted.update(state.parent_ids)
            trusted.update(state.created_ids)

        batch_levels = {CREATE_TOOLS[i.tool_name] for i in invocations if i.tool_name in CREATE_TOOLS}
        blocked: Dict[str, str] = {}
        for inv in invocations:
            reason = self._hierarchy_violation(inv, state, batch_levels) or self._provenance_violation(inv, trusted)
            if reason:
                logger.warning("Blocked %s (%s): %s", inv.tool_name, inv.invocation_id, reason)
                blocked[inv.invocation_id] = reason
        return blocked

    def _hierarchy_violation(
        self, inv: ToolInvocationRequest, state: Optional[WorkflowState], batch_levels: Set[EntityLevel]
    ) -> Optional[str]:
        level = CREATE_TOOLS.get(inv.tool_name)
        if level is None:
            return None
        parent = _parent_of(level)
        if parent is not None and parent in batch_levels:
            return (f"Cannot create {level.plural} in the same step as their {parent.value}. "
                    f"Create the {parent.value} first, report its ID and ask the user to confirm.")
        if state is None or level not in state.remaining_levels:
            return None
        if state.stage is not WorkflowStage.CONFIRMED:
            return (f"The user has not confirmed adding {level.plural} yet. "
                    f"Create the {state.parent_level.value} only and ask for confirmation.")
        if level is not state.child_level:
            return f"Only {state.child_level.plural} may be created in this step; ask before adding {level.plural}."
        return None

    def _provenance_violation(self, inv: ToolInvocationRequest, trusted: Set[str]) -> Optional[str]:
        if inv.tool_name in READ_ONLY_TOOLS:
            return None
        for arg, value in _id_arguments(inv.arguments):
            if value in trusted:
                continue
            source = next((t for t in trusted if len(t) >= MIN_ID_LEN and t in value), None)
            if source is not None:
                return (f"{arg} '{value}' looks constructed from the known ID '{source}'. "
                        f"IDs are opaque; use one exactly as listed in the context.")
            if self.strict_provenance:
                return f"{arg} '{value}' does not appear in the current context or earlier tool results."
            logger.warning("%s argument %s=%r is not in context; the backend will verify it", inv.tool_name, arg, value)
        return None

    # ------------------------------------------------------------------ #
    def advance(
        self, state: Optional[WorkflowState], results: Sequence[ToolExecutionResult]
    ) -> Optional[WorkflowState]:
        created = created_entities(results)

        if state is None or state.stage is WorkflowStage.PARENT_PENDING:
            level = state.parent_level if state else None
            candidates = [c for c in created if level is None or c["level"] is level]
            if state is None and len(candidates) != 1:
                return None
            if not candidates:
                return state
            first = candidates[0]
            if first["level"].child is None:
                return None
            return WorkflowState(
                stage=WorkflowStage.AWAITING_CONFIRMATION,
                parent_level=first["level"],
                parent_ids=[c["id"] for c in candidates if c["level"] is first["level"]],
                parent_title=first["title"] or (state.parent_title if state else None),
                remaining_levels=state.remaining_levels if state else [first["level"].child],
                pending_children=state.pending_children if state else [],
                created_ids=[c["id"] for c in candidates],
            )

        if state.stage is WorkflowStage.CONFIRMED:
            children = [c for c in created if c["level"] is state.child_level]
            if not children:
                return state
            rest = state.remaining_levels[1:]
            if not rest:
                logger.info("Workflow complete: created %d %s", len(children), state.child_level.plural)
                return None
            return WorkflowState(
                stage=WorkflowStage.AWAITING_CONFIRMATION,
                parent_level=state.child_level,
                parent_ids=[c["id"] for c in children],
                parent_title=children[0]["title"],
                remaining_levels=rest,
                created_ids=state.created_ids + [c["id"] for c in children],
            )
        return state


def _parent_of(level: EntityLevel) -> Optional[EntityLevel]:
    return next((p for p in EntityLevel if p.child is level), None)


def _id_arguments(arguments: Dict[str, Any]) -> Iterator[tuple]:
    for arg in ENTITY_ID_ARGS:
        value = arguments.get(arg)
        if isinstance(value, str):
            yield arg, value
        elif isinstance(value, list):
            yield from ((arg, v) for v in value if isinstance(v, str))


def created_entities(results: Sequence[ToolExecutionResult]) -> List[Dict[str, Any]]:
    """Successful path/lesson/section creations in result order."""
    out = []
    for r in results:
        level = CREATE_TOOLS.get(r.tool_name)
        if level is None or not r.success or not isinstance(r.payload, dict):
            continue
        if level is EntityLevel.SECTION:
            entity = r.payload.get("sectionInfo") or {}
        else:
            entity = r.payload.get(level.value) or {}
        if entity.get("id"):
            out.append({"level": level, "id": str(entity["id"]), "title": entity.get("title")})
    return out
