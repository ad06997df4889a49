"""
Builds the AssistantReply from the final model text and the tool results.

Everything here is a pure function of its inputs. Button and citation
extraction are heuristics over free text and tool payloads; keep them here so
they can be replaced without touching the orchestration loop.
"""
import re
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from luna_assistant.core.enums import EntityLevel, WorkflowStage
from luna_assistant.models.reply import ActionButton, AssistantReply, Citation, RealTimeUpdate
from luna_assistant.models.tool_calls import ToolExecutionResult
from luna_assistant.models.workflow_state import WorkflowState
from luna_assistant.workflow import created_entities

MAX_BUTTONS = 5

FALLBACK_NOTE = (
    "I couldn't find anything in the knowledge base for this, "
    "so this answer is based on my general knowledge."
)
_FALLBACK_ACK = re.compile(
    r"general knowledge|couldn'?t find|could not find|didn'?t find|did not find|"
    r"no (relevant |specific |matching )?(results|information|matches|documents)",
    re.I,
)
_QUESTION_CUES = re.compile(
    r"\b(would you like|shall i|should i|do you want|want me to|would you prefer)\b|\(yes/no\)", re.I
)
_CREATED_WITH_ID = re.compile(
    r"created (?:the |a |your )?(path|lesson)\b[^.\n]*?\bID[:\s]*\[?([0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12})",
    re.I,
)


# --------------------------------------------------------------------------- #
# Citations
# --------------------------------------------------------------------------- #
def _cite(entity: Any, prefix: str, key: str = "title") -> Iterator[Citation]:
    if isinstance(entity, dict) and entity.get("id"):
        yield Citation(id=str(entity["id"]), title=f"{prefix}: {entity.get(key) or 'Untitled'}")


def _search_citations(p: Dict[str, Any]) -> Iterator[Citation]:
    for doc in p.get("results") or []:
        if doc.get("id") and doc.get("title"):
            yield Citation(id=str(doc["id"]), title=doc["title"], url=doc.get("url"))


def _section_info(p: Dict[str, Any]) -> Iterator[Citation]:
    info = p.get("sectionInfo") or {}
    if info.get("id") and info.get("title"):
        yield Citation(id=str(info["id"]), title=info["title"], url=info.get("url"))


def _outline(p: Dict[str, Any]) -> Iterator[Citation]:
    outline = p.get("outlineData")
    if isinstance(outline, dict):
        name = outline.get("baseClassName") or outline.get("title") or "New Course"
        yield Citation(id="generated-outline", title=f"Generated Course: {name}")


def _structure(p: Dict[str, Any]) -> Iterator[Citation]:
    base = p.get("baseClass") or {}
    if base.get("id"):
        count = len(p.get("allLessonIds") or [])
        yield Citation(id=str(base["id"]), title=f"Base Class Structure: {base.get('name') or 'Class'} ({count} lessons)")


def _const(cid: str) -> Callable[[Dict[str, Any]], Iterator[Citation]]:
    def rule(p: Dict[str, Any]) -> Iterator[Citation]:
        yield Citation(id=cid, title=p.get("message") or cid)
    return rule


def _ui_action(p: Dict[str, Any]) -> Iterator[Citation]:
    details = p.get("details") or {}
    if details.get("componentId"):
        yield Citation(id=str(details["componentId"]), title=f"UI Action: {details.get('actionType')}")


def _kb_sources(p: Dict[str, Any]) -> Iterator[Citation]:
    if p.get("baseClassId"):
        yield Citation(id=str(p["baseClassId"]), title="New Course Foundation", url=p.get("redirectUrl"))


_CITATION_RULES: Dict[str, Callable[[Dict[str, Any]], Iterator[Citation]]] = {
    "search": _search_citations,
    "updateContent": _section_info,
    "addLessonSection": _section_info,
    "generateCourseOutline": _outline,
    "enhancedCourseGeneration": _outline,
    "fetchBaseClassStructure": _structure,
    "updateBaseClass": lambda p: _cite(p.get("baseClass"), "Updated Base Class", "name"),
    "createPath": lambda p: _cite(p.get("path"), "New Path"),
    "updatePath": lambda p: _cite(p.get("path"), "Updated Path"),
    "createLesson": lambda p: _cite(p.get("lesson"), "New Lesson"),
    "updateLesson": lambda p: _cite(p.get("lesson"), "Updated Lesson"),
    "updateLessonSection": lambda p: _cite(p.get("section"), "Updated Section"),
    "deletePath": _const("deleted-item"),
    "deleteLesson": _const("deleted-item"),
    "deleteLessonSection": _const("deleted-item"),
    "reorderContent": _const("reordered-content"),
    "uiAction": _ui_action,
    "collectKnowledgeBaseSources": _kb_sources,
}


def extract_citations(results: Sequence[ToolExecutionResult]) -> List[Citation]:
    """Entity references lifted from successful tool results, first occurrence wins."""
    seen, out = set(), []
    for r in results:
        rule = _CITATION_RULES.get(r.tool_name)
        if rule is None or not r.success or not isinstance(r.payload, dict):
            continue
        for citation in rule(r.payload):
            key = (citation.id, citation.title)
            if key not in seen:
                seen.add(key)
                out.append(citation)
    return out


# --------------------------------------------------------------------------- #
# Real-time updates and outline
# --------------------------------------------------------------------------- #
_UPDATE_RULES: Dict[str, Tuple[str, str, Callable[[Dict[str, Any]], Any]]] = {
    "createPath": ("path", "create", lambda p: p.get("path")),
    "updatePath": ("path", "update", lambda p: p.get("path") or {"id": p.get("pathId")}),
    "deletePath": ("path", "delete", lambda p: {"id": p.get("pathId")}),
    "createLesson": ("lesson", "create", lambda p: p.get("lesson")),
    "updateLesson": ("lesson", "update", lambda p: p.get("lesson")),
    "deleteLesson": ("lesson", "delete", lambda p: {"id": p.get("lessonId")}),
    "addLessonSection": ("section", "create", lambda p: p.get("section") or p.get("sectionInfo")),
    "updateLessonSection": ("section", "update", lambda p: p.get("section")),
    "updateContent": ("section", "update", lambda p: p.get("sectionInfo")),
    "deleteLessonSection": ("section", "delete", lambda p: {"id": p.get("sectionId")}),
    "updateBaseClass": ("baseClass", "update", lambda p: p.get("baseClass")),
}


def extract_real_time_updates(results: Sequence[ToolExecutionResult]) -> List[RealTimeUpdate]:
    out = []
    for r in results:
        rule = _UPDATE_RULES.get(r.tool_name)
        if rule is None or not r.success or not isinstance(r.payload, dict):
            continue
        entity, change, pick = rule
        data = pick(r.payload) or {}
        if isinstance(data, dict) and data.get("id"):
            out.append(RealTimeUpdate(entity=entity, entity_id=str(data["id"]), type=change, updated_data=data))
    return out


def extract_outline(results: Sequence[ToolExecutionResult]) -> Tuple[bool, Optional[Dict[str, Any]]]:
    for r in results:
        if r.success and isinstance(r.payload, dict) and r.payload.get("isOutline"):
            return True, r.payload.get("outlineData") or r.payload.get("basicOutline")
    return False, None


# --------------------------------------------------------------------------- #
# Action buttons
# --------------------------------------------------------------------------- #
def _workflow_buttons(state: Optional[WorkflowState]) -> List[ActionButton]:
    if state is None or state.stage is not WorkflowStage.AWAITING_CONFIRMATION or state.child_level is None:
        return []
    child = state.child_level
    payload = {"workflowState": state.dump(), "parentIds": list(state.parent_ids), "nextTool": child.create_tool}
    return [
        ActionButton(id=f"workflow-confirm-{child.value}", label=f"Yes, add {child.plural}",
                     action="confirm_workflow", data=payload, style="primary"),
        ActionButton(id=f"workflow-decline-{child.value}", label="Not now",
                     action="decline_workflow", data={"workflowState": state.dump()}, style="secondary"),
    ]


def _tool_action_buttons(results: Sequence[ToolExecutionResult]) -> List[ActionButton]:
    out = []
    for r in results:
        if not r.success or not isinstance(r.payload, dict):
            continue
        for action in r.payload.get("actions") or []:
            if not isinstance(action, dict) or not action.get("type"):
                continue
            data = {k: v for k, v in action.items() if k not in ("type", "label")}
            data["toolName"] = r.tool_name
            out.append(ActionButton(
                id=f"{r.tool_name}-{action['type']}",
                label=action.get("label") or action["type"],
                action=action["type"],
                data=data,
                style="primary" if not out else "secondary",
            ))
    return out


def _text_workflow_buttons(text: str) -> List[ActionButton]:
    m = _CREATED_WITH_ID.search(text)
    if not m:
        return []
    level = EntityLevel(m.group(1).lower())
    child = level.child
    return [ActionButton(
        id=f"created-{level.value}-add-{child.plural}",
        label=f"Add {child.plural}",
        action="confirm_workflow",
        data={"parentIds": [m.group(2)], "parentLevel": level.value, "nextTool": child.create_tool},
        style="primary",
    )]


def _generic_buttons(text: str) -> List[ActionButton]:
    if not _QUESTION_CUES.search(text):
        return []
    return [
        ActionButton(id="generic-yes", label="Yes", action="yes", data={}, style="success"),
        ActionButton(id="generic-no", label="No", action="no", data={}, style="secondary"),
    ]


def extract_action_buttons(
    text: str, results: Sequence[ToolExecutionResult], workflow_state: Optional[WorkflowState] = None
) -> List[ActionButton]:
    """Specific patterns first; the generic yes/no pair only when none matched."""
    specific = _workflow_buttons(workflow_state) or _text_workflow_buttons(text)
    specific = specific + _tool_action_buttons(results)
    buttons, seen = [], set()
    for b in specific or _generic_buttons(text):
        if b.id not in seen:
            seen.add(b.id)
            buttons.append(b)
    return buttons[:MAX_BUTTONS]


# --------------------------------------------------------------------------- #
# Text guarantees
# --------------------------------------------------------------------------- #
def search_fell_back(results: Sequence[ToolExecutionResult]) -> bool:
    """True when a search ran and produced no knowledge-base entities."""
    searches = [r for r in results if r.tool_name == "search"]
    if not searches:
        return False
    return not any(r.success and isinstance(r.payload, dict) and r.payload.get("results") for r in searches)


def ensure_fallback_acknowledged(text: str, results: Sequence[ToolExecutionResult]) -> str:
    if search_fell_back(results) and not _FALLBACK_ACK.search(text):
        return f"{text}\n\n{FALLBACK_NOTE}" if text else FALLBACK_NOTE
    return text


def ensure_created_ids_mentioned(text: str, results: Sequence[ToolExecutionResult]) -> str:
    missing = [
        f"{c['level'].value.capitalize()} ID: {c['id']}"
        for c in created_entities(results)
        if c["level"] in (EntityLevel.PATH, EntityLevel.LESSON) and c["id"] not in text
    ]
    if not missing:
        return text
    return "\n\n".join([text, "\n".join(missing)]) if text else "\n".join(missing)


def _results_summary(results: Sequence[ToolExecutionResult]) -> str:
    lines = []
    for r in results:
        if r.success and isinstance(r.payload, dict) and r.payload.get("message"):
            lines.append(r.payload["message"])
        elif not r.success:
            lines.append(f"{r.tool_name} failed: {r.failure.message}")
    return "\n".join(lines)


def assemble_reply(
    text: str,
    results: Sequence[ToolExecutionResult] = (),
    workflow_state: Optional[WorkflowState] = None,
) -> AssistantReply:
    text = (text or "").strip() or _results_summary(results)
    text = ensure_created_ids_mentioned(text, results)
    text = ensure_fallback_acknowledged(text, results)
    is_outline, outline = extract_outline(results)
    return AssistantReply(
        text=text,
        citations=extract_citations(results),
        action_buttons=extract_action_buttons(text, results, workflow_state),
        has_tool_results=bool(results),
        tools_used=list(dict.fromkeys(r.tool_name for r in results)),
        is_outline=is_outline,
        outline_data=outline,
        real_time_updates=extract_real_time_updates(results),
        workflow_state=workflow_state,
    )
