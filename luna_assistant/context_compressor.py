"""
Turns a UI snapshot into a bounded, deterministic text block for the prompt.

Only the first ``MAX_COMPONENTS`` visible components are summarized and any
single free-text field is capped at ``FIELD_CAP`` characters. Identifiers are
gathered separately from every component; that list is the only place the
model learns real entity IDs from.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Tuple

from luna_assistant.models.ui_context import UIComponent, UIContextSnapshot

MAX_COMPONENTS = 10
FIELD_CAP = 300
ELLIPSIS = "..."

TEACHER_TYPES = {"base-class-studio-page", "content-editor"}
STUDENT_TYPES = {"course-navigation", "lesson-content-renderer", "course-overview"}


@dataclass(frozen=True)
class AvailableId:
    kind: str       # lesson | path | base_class | editor_item
    value: str
    label: str

    def render(self) -> str:
        return f"{self.label}: {self.value}"


@dataclass(frozen=True)
class CompressedContext:
    text: str
    available_ids: Tuple[AvailableId, ...] = ()
    insights: str = ""
    interface_role: str = "unknown"   # teacher | student | unknown
    has_assessment: bool = False
    component_lines: Tuple[str, ...] = field(default=())

    @property
    def known_ids(self) -> frozenset:
        return frozenset(a.value for a in self.available_ids)


def truncate(text: Any, cap: int = FIELD_CAP) -> str:
    text = str(text)
    return text if len(text) <= cap else text[:cap] + ELLIPSIS


def _mapping(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _records(value: Any) -> List[Dict[str, Any]]:
    """The dict entries of a list field; anything else in it is skipped."""
    return [v for v in value if isinstance(v, dict)] if isinstance(value, list) else []


def _count(value: Any) -> int:
    return len(value) if isinstance(value, list) else 0


def _topics(module: Dict[str, Any]) -> List[str]:
    topics = module.get("topics")
    return [str(t) for t in topics if t] if isinstance(topics, list) else []


# --------------------------------------------------------------------------- #
# Per-type summarizers
# --------------------------------------------------------------------------- #
def _course_structure(c: UIComponent) -> str:
    modules = _records(c.content.get("modules"))
    if not modules:
        return ""
    listing = "; ".join(f"{m.get('title', '')}: ({', '.join(_topics(m)) or 'No topics listed'})" for m in modules)
    return f"Current Modules: {truncate(listing)}"


def _navigation_tree(c: UIComponent) -> str:
    parts = ["Navigation showing class structure"]
    if c.content.get("baseClassName"):
        parts[0] += f' for "{truncate(c.content["baseClassName"])}"'
    paths = _records(c.content.get("paths"))
    if paths:
        total = sum(_count(p.get("lessons")) for p in paths)
        parts.append(f"{len(paths)} paths and {total} total lessons")
        listing = ", ".join(f'"{p.get("title")}" ({_count(p.get("lessons"))} lessons)' for p in paths)
        parts.append(f"Paths: {truncate(listing)}")
    if c.content.get("selectedItemType"):
        parts.append(f"Selected {truncate(c.content['selectedItemType'])}: "
                     f"{truncate(c.content.get('selectedItemTitle', ''))}")
    return ". ".join(parts)


def _content_editor(c: UIComponent) -> str:
    out = f"Editor for {truncate(c.content.get('editorType', 'content'))}"
    if c.content.get("itemTitle"):
        out += f': "{truncate(c.content["itemTitle"])}"'
    data = _mapping(c.content.get("itemData"))
    for key, label, cap in (("description", "Description", 100), ("subject", "Subject", FIELD_CAP),
                            ("gradeLevel", "Grade Level", FIELD_CAP), ("sectionType", "Section Type", FIELD_CAP)):
        if data.get(key):
            out += f". {label}: {truncate(data[key], cap)}"
    return out


def _studio_page(c: UIComponent) -> str:
    out = f'User is in the Base Class Studio editing "{truncate(c.content.get("baseClassName") or "a class")}"'
    if c.content.get("baseClassSubject"):
        out += f" ({truncate(c.content['baseClassSubject'])})"
    if c.content.get("baseClassGradeLevel"):
        out += f" for {truncate(c.content['baseClassGradeLevel'])}"
    if c.content.get("selectedItemType") and c.content.get("selectedItemTitle"):
        out += (f". Currently editing {truncate(c.content['selectedItemType'])}: "
                f'"{truncate(c.content["selectedItemTitle"])}"')
    if c.content.get("totalPaths"):
        out += f". Contains {truncate(c.content['totalPaths'])} learning paths"
    if c.content.get("totalLessons"):
        out += f" with {truncate(c.content['totalLessons'])} total lessons"
    return out


def _course_navigation(c: UIComponent) -> str:
    out = "Student viewing course navigation"
    if c.content.get("courseTitle"):
        out += f' for "{truncate(c.content["courseTitle"])}"'
    if c.content.get("overallProgress") is not None:
        out += f" ({truncate(c.content['overallProgress'])}% complete)"
    paths = _records(c.content.get("pathsData"))
    if paths:
        listing = ", ".join(
            f'"{p.get("title")}" ({p.get("lessonsCount", 0)} lessons, {p.get("progress", 0)}% complete)' for p in paths
        )
        out += f". Paths: {truncate(listing)}"
    return out


def _lesson_renderer(c: UIComponent) -> str:
    out = "Student viewing lesson content"
    if c.content.get("title"):
        out += f' for "{truncate(c.content["title"])}"'
    if c.content.get("currentSection"):
        out += f' - currently on section "{truncate(c.content["currentSection"])}"'
    if c.content.get("progress") is not None:
        out += f" ({truncate(c.content['progress'])}% complete)"
    active = c.content.get("activeTab") or c.state.get("activeTab")
    if active:
        out += f". Currently viewing: {truncate(active)}"
    display = _mapping(c.content.get("displayContent"))
    for key, label, cap in (("introduction", "Introduction", 200),
                            ("detailedExplanation", "Detailed Explanation", FIELD_CAP),
                            ("expertSummary", "Expert Summary", 200)):
        if display.get(key):
            out += f". {label}: {truncate(display[key], cap)}"
    return out


def _course_overview(c: UIComponent) -> str:
    out = "Course overview card"
    if c.content.get("title"):
        out += f' showing "{truncate(c.content["title"])}"'
    if c.content.get("overallProgress") is not None:
        out += f" ({truncate(c.content['overallProgress'])}% complete)"
    if c.content.get("description"):
        out += f". Description: {truncate(c.content['description'], 100)}"
    return out


def _assessment_taker(c: UIComponent) -> str:
    out = "Student taking assessment"
    assessment = _mapping(c.content.get("assessment"))
    if assessment.get("title"):
        out += f' "{truncate(assessment["title"])}"'
    idx, total = c.state.get("currentQuestionIndex"), c.state.get("totalQuestions")
    if isinstance(idx, int) and total:
        out += f". Currently on question {idx + 1} of {truncate(total)}"
    question = _mapping(c.content.get("currentQuestion"))
    if question.get("question_text"):
        out += (f'. Question: "{truncate(question["question_text"])}" '
                f'({truncate(question.get("question_type", "unknown"))})')
    return out


def _generic(c: UIComponent) -> str:
    keys = list(c.content)
    if not keys:
        return ""
    return f"Contains: {truncate(', '.join(keys[:3]))}{ELLIPSIS if len(keys) > 3 else ''}"


_SUMMARIZERS: Dict[str, Callable[[UIComponent], str]] = {
    "course-structure": _course_structure,
    "navigation-tree": _navigation_tree,
    "content-editor": _content_editor,
    "base-class-studio-page": _studio_page,
    "course-navigation": _course_navigation,
    "lesson-content-renderer": _lesson_renderer,
    "course-overview": _course_overview,
    "AssessmentTaker": _assessment_taker,
}


def summarize_component(c: UIComponent) -> str:
    line = f"[{truncate(c.type)}] Role: {truncate(c.role or 'unknown')}, ID: {truncate(c.id)}"
    if c.metadata.get("baseClassName"):
        line += f', Name: "{truncate(c.metadata["baseClassName"])}"'
    if c.content.get("title") and c.type not in _SUMMARIZERS:
        line += f', Title: "{truncate(c.content["title"])}"'
    detail = _SUMMARIZERS.get(c.type, _generic)(c)
    return f"{line}: {detail}" if detail else line


# --------------------------------------------------------------------------- #
# Identifier scan
# --------------------------------------------------------------------------- #
def _ids_in(c: UIComponent) -> Iterator[AvailableId]:
    content, meta = c.content, c.metadata
    lesson = content.get("lessonId") or content.get("lesson_id")
    if lesson:
        yield AvailableId("lesson", str(lesson), "Lesson ID")
    selected = content.get("selectedItemId")
    if selected and content.get("selectedItemType") in ("lesson", "path"):
        kind = content["selectedItemType"]
        yield AvailableId(kind, str(selected), f"Selected {kind.capitalize()} ID")
    item = _mapping(content.get("itemData"))
    if c.type == "content-editor" and item.get("id"):
        yield AvailableId("editor_item", str(item["id"]), "Editor Item ID")
    for base in (content.get("baseClassId"), content.get("base_class_id"), meta.get("baseClassId")):
        if base:
            yield AvailableId("base_class", str(base), "Base Class ID")
    if c.type == "lesson-content-renderer" and (meta.get("lessonId") or lesson):
        yield AvailableId("lesson", str(meta.get("lessonId") or lesson), "Current Lesson ID")

    paths = []
    if c.type == "navigation-tree":
        paths = _records(content.get("paths"))
    elif c.type == "course-navigation":
        paths = _records(content.get("pathsData"))
    for path in paths:
        if not path.get("id"):
            continue
        path_title = truncate(path.get("title", ""))
        yield AvailableId("path", str(path["id"]), f'Path "{path_title}"')
        for les in _records(path.get("lessons")):
            if les.get("id"):
                yield AvailableId("lesson", str(les["id"]), f'Lesson "{truncate(les.get("title", ""))}" (in {path_title})')


def collect_ids(snapshot: UIContextSnapshot) -> Tuple[AvailableId, ...]:
    seen, out = set(), []
    for comp in snapshot.components:
        for aid in _ids_in(comp):
            if aid.value not in seen:
                seen.add(aid.value)
                out.append(aid)
    return tuple(out)


# --------------------------------------------------------------------------- #
# Whole-snapshot views
# --------------------------------------------------------------------------- #
def analyze_ui_patterns(snapshot: UIContextSnapshot) -> str:
    insights = []
    if "/lesson" in snapshot.route:
        insights.append("User is viewing a lesson page")
    if "/knowledge-base" in snapshot.route:
        insights.append("User is in the knowledge base section")
    forms = [c for c in snapshot.components if c.type == "form" or c.role in ("form", "input")]
    if forms:
        insights.append(f"User has access to {len(forms)} form/input components")
    navs = [c for c in snapshot.components if c.role == "navigation"]
    if navs:
        insights.append(f"User has access to {len(navs)} navigation components")
    if snapshot.last_user_action:
        act = snapshot.last_user_action
        insights.append(f"User last interacted with component {truncate(act.component_id)} ({truncate(act.action_type)})")
    if snapshot.focused_component_id:
        focused = snapshot.component(snapshot.focused_component_id)
        if focused:
            insights.append(f"User's focus is on a {truncate(focused.type)} ({truncate(focused.role)})")
    return ". ".join(insights) or "No specific UI patterns detected"


def detect_interface_role(snapshot: UIContextSnapshot) -> str:
    teacher = any(
        c.type in TEACHER_TYPES or (c.type == "navigation-tree" and c.content.get("selectedItemType"))
        for c in snapshot.components
    )
    if teacher:
        return "teacher"
    if any(c.type in STUDENT_TYPES for c in snapshot.components):
        return "student"
    return "unknown"


def compress(snapshot: UIContextSnapshot) -> CompressedContext:
    visible = [c for c in snapshot.components if c.visible][:MAX_COMPONENTS]
    lines = tuple(summarize_component(c) for c in visible)
    ids = collect_ids(snapshot)
    insights = analyze_ui_patterns(snapshot)

    if not snapshot.components and not snapshot.route:
        text = "No UI context available - the user may be on a page without context registration."
    else:
        action = snapshot.last_user_action
        body = [
            f"**Current Page**: {truncate(snapshot.route or 'unknown')}",
            f"**Active Components**: {len(snapshot.components)} UI elements detected",
            f"**Focused Element**: {truncate(snapshot.focused_component_id or 'None')}",
            f"**Last User Action**: {truncate(f'{action.action_type} on {action.component_id}') if action else 'None'}",
            f"**UI Patterns**: {insights}",
            "",
            "## Page Content Analysis",
            "\n".join(f"- {line}" for line in lines) or "No visible components",
            "",
            "## Available Context IDs for Tools",
            "\n".join(f"- {a.render()}" for a in ids) or "No specific IDs detected in current context",
        ]
        text = "\n".join(body)

    return CompressedContext(
        text=text,
        available_ids=ids,
        insights=insights,
        interface_role=detect_interface_role(snapshot),
        has_assessment=any(c.type == "AssessmentTaker" for c in snapshot.components),
        component_lines=lines,
    )
