"""Course structure tools: base classes, paths, lessons, sections."""
import re
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field, field_validator

from luna_assistant.exceptions import ToolErrorKind, ToolExecutionError
from luna_assistant.prompts import SECTION_CONTENT_PROMPT, SECTION_REVISION_PROMPT
from luna_assistant.tools import ToolParams, tool
from luna_assistant.tools.backend import segment

UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$", re.I)


def to_rich_text(text: str) -> Dict[str, Any]:
    """Wrap drafted text as a minimal editor document: headings, bullets, paragraphs."""
    blocks: List[Dict[str, Any]] = []
    for chunk in text.split("\n\n"):
        chunk = chunk.strip()
        if not chunk:
            continue
        if chunk.startswith("#"):
            level = len(chunk) - len(chunk.lstrip("#"))
            blocks.append({
                "type": "heading",
                "attrs": {"level": min(level, 6)},
                "content": [{"type": "text", "text": chunk.lstrip("#").strip()}],
            })
        elif chunk.startswith(("- ", "* ")):
            blocks.append({
                "type": "bulletList",
                "content": [{
                    "type": "listItem",
                    "content": [{"type": "paragraph", "content": [{"type": "text", "text": chunk[2:].strip()}]}],
                }],
            })
        else:
            blocks.append({"type": "paragraph", "content": [{"type": "text", "text": chunk}]})
    return {"type": "doc", "content": blocks}


async def _draft(ctx, system: str, user: str) -> str:
    if ctx.gateway is None:
        raise ToolExecutionError(ToolErrorKind.HANDLER_ERROR, "AI content generation is not available.")
    return await ctx.gateway.draft_text(system, user)


def _only_set(**fields) -> Dict[str, Any]:
    return {k: v for k, v in fields.items() if v is not None}


# --- Base classes ----------------------------------------------------------

class FetchBaseClassParams(ToolParams):
    base_class_id: str = Field(..., description="The base class ID from the current context.")


@tool("fetchBaseClassStructure", params=FetchBaseClassParams)
async def fetch_base_class_structure(ctx, params: FetchBaseClassParams) -> Dict[str, Any]:
    """Fetch a base class with all of its paths and lessons, including every lesson ID."""
    base_class = await ctx.backend.get(f"/api/teach/base-classes/{segment(params.base_class_id)}")
    paths = base_class.get("paths") or []
    lessons_by_path = {p["id"]: p["lessons"] for p in paths if p.get("lessons")}
    all_lesson_ids = [lesson["id"] for lessons in lessons_by_path.values() for lesson in lessons]
    return {
        "success": True,
        "message": f"Retrieved base class structure with {len(paths)} paths and {len(all_lesson_ids)} lessons",
        "baseClass": base_class,
        "lessonsByPath": lessons_by_path,
        "allLessonIds": all_lesson_ids,
        "pathIds": [p["id"] for p in paths],
    }


class UpdateBaseClassParams(ToolParams):
    base_class_id: str
    name: Optional[str] = None
    description: Optional[str] = None
    subject: Optional[str] = None
    grade_level: Optional[str] = None


@tool("updateBaseClass", params=UpdateBaseClassParams)
async def update_base_class(ctx, params: UpdateBaseClassParams) -> Dict[str, Any]:
    """Update base class properties such as name, description, subject or grade level."""
    updates = _only_set(name=params.name, description=params.description,
                        subject=params.subject, gradeLevel=params.grade_level)
    result = await ctx.backend.patch(f"/api/teach/base-classes/{segment(params.base_class_id)}", updates)
    return {"success": True, "message": "Base class updated successfully", "baseClass": result}


# --- Paths -----------------------------------------------------------------

class CreatePathParams(ToolParams):
    base_class_id: str = Field(..., description="The base class the path belongs to.")
    title: str
    description: str
    order_index: Optional[int] = None


@tool("createPath", params=CreatePathParams)
async def create_path(ctx, params: CreatePathParams) -> Dict[str, Any]:
    """Create a new learning path in a base class."""
    result = await ctx.backend.post(
        f"/api/teach/base-classes/{segment(params.base_class_id)}/paths",
        {"title": params.title, "description": params.description, "order_index": params.order_index},
    )
    return {"success": True, "message": f'Path "{params.title}" created successfully', "path": result}


class UpdatePathParams(ToolParams):
    path_id: str = Field(..., description="UUID of the path to update.")
    title: Optional[str] = None
    description: Optional[str] = None

    @field_validator("path_id")
    @classmethod
    def _uuid_only(cls, v: str) -> str:
        if not UUID_RE.match(v):
            raise ValueError(f"Invalid path ID format: {v}. Path IDs must be valid UUIDs, not module identifiers.")
        return v


@tool("updatePath", params=UpdatePathParams)
async def update_path(ctx, params: UpdatePathParams) -> Dict[str, Any]:
    """Update a learning path's title or description."""
    result = await ctx.backend.patch(
        f"/api/teach/paths/{segment(params.path_id)}",
        _only_set(title=params.title, description=params.description),
    )
    return {"success": True, "message": "Path updated successfully", "path": result, "pathId": params.path_id}


class DeletePathParams(ToolParams):
    path_id: str


@tool("deletePath", params=DeletePathParams)
async def delete_path(ctx, params: DeletePathParams) -> Dict[str, Any]:
    """Delete a learning path and everything in it."""
    await ctx.backend.delete(f"/api/teach/paths/{segment(params.path_id)}")
    return {"success": True, "message": "Path deleted successfully", "pathId": params.path_id}


# --- Lessons ---------------------------------------------------------------

class CreateLessonParams(ToolParams):
    path_id: str = Field(..., description="The path the lesson belongs to. Must be a real path ID.")
    title: str
    description: str
    objectives: Optional[str] = None
    order_index: Optional[int] = None


@tool("createLesson", params=CreateLessonParams)
async def create_lesson(ctx, params: CreateLessonParams) -> Dict[str, Any]:
    """Create a new lesson in a learning path."""
    description = params.description
    if params.objectives:
        description = f"{description}\n\nLearning Objectives:\n{params.objectives}"
    result = await ctx.backend.post(
        f"/api/teach/paths/{segment(params.path_id)}/lessons",
        {"title": params.title, "description": description, "order_index": params.order_index},
    )
    return {"success": True, "message": f'Lesson "{params.title}" created successfully', "lesson": result}


class UpdateLessonParams(ToolParams):
    lesson_id: str
    title: Optional[str] = None
    description: Optional[str] = None


@tool("updateLesson", params=UpdateLessonParams)
async def update_lesson(ctx, params: UpdateLessonParams) -> Dict[str, Any]:
    """Update a lesson's title or description."""
    result = await ctx.backend.patch(
        f"/api/teach/lessons/{segment(params.lesson_id)}",
        _only_set(title=params.title, description=params.description),
    )
    return {
        "success": True,
        "message": f'Lesson "{result.get("title") or "Untitled"}" updated successfully',
        "lesson": result,
    }


class DeleteLessonParams(ToolParams):
    lesson_id: str


@tool("deleteLesson", params=DeleteLessonParams)
async def delete_lesson(ctx, params: DeleteLessonParams) -> Dict[str, Any]:
    """Delete a lesson and its sections."""
    await ctx.backend.delete(f"/api/teach/lessons/{segment(params.lesson_id)}")
    return {"success": True, "message": "Lesson deleted successfully", "lessonId": params.lesson_id}


# --- Sections --------------------------------------------------------------

class AddLessonSectionParams(ToolParams):
    lesson_id: str = Field(..., description="The lesson to add the section to. Must be a real lesson ID.")
    title: str
    content_description: str = Field(..., description="What the section should teach.")
    section_type: str = "text-editor"
    order_index: Optional[int] = None


@tool("addLessonSection", params=AddLessonSectionParams)
async def add_lesson_section(ctx, params: AddLessonSectionParams) -> Dict[str, Any]:
    """Add a new section to a lesson, drafting its content with AI."""
    text = await _draft(
        ctx,
        SECTION_CONTENT_PROMPT.format(title=params.title, description=params.content_description),
        f"Write the section '{params.title}'.",
    )
    body = {"title": params.title, "content": to_rich_text(text), "section_type": params.section_type}
    if params.order_index is not None:
        body["order_index"] = params.order_index
    section = await ctx.backend.post(f"/api/teach/lessons/{segment(params.lesson_id)}/sections", body)
    return {
        "success": True,
        "message": f'Added the section "{params.title}" to the lesson.',
        "section": section,
        "sectionInfo": {
            "id": section.get("id"),
            "title": section.get("title") or params.title,
            "url": f"/lessons/{params.lesson_id}#section-{section.get('id')}",
        },
    }


class UpdateLessonSectionParams(ToolParams):
    section_id: str
    title: Optional[str] = None
    content_description: Optional[str] = None
    section_type: Optional[Literal["text", "video_url", "quiz", "document_embed"]] = None


@tool("updateLessonSection", params=UpdateLessonSectionParams)
async def update_lesson_section(ctx, params: UpdateLessonSectionParams) -> Dict[str, Any]:
    """Update a lesson section's title, type, or regenerate its content from a description."""
    updates = _only_set(title=params.title, section_type=params.section_type)
    if params.content_description:
        text = await _draft(
            ctx,
            SECTION_CONTENT_PROMPT.format(title=params.title or "Section", description=params.content_description),
            f"Generate educational content for: {params.content_description}",
        )
        updates["content"] = to_rich_text(text)
    result = await ctx.backend.patch(f"/api/teach/sections/{segment(params.section_id)}", updates)
    return {"success": True, "message": "Section updated successfully", "section": result}


class DeleteLessonSectionParams(ToolParams):
    section_id: str


@tool("deleteLessonSection", params=DeleteLessonSectionParams)
async def delete_lesson_section(ctx, params: DeleteLessonSectionParams) -> Dict[str, Any]:
    """Delete a lesson section."""
    await ctx.backend.delete(f"/api/teach/sections/{segment(params.section_id)}")
    return {"success": True, "message": "Section deleted successfully", "sectionId": params.section_id}


class UpdateContentParams(ToolParams):
    section_id: str = Field(..., description="The section whose content should change.")
    modification_instruction: str = Field(..., description="How the content should be modified.")


@tool("updateContent", params=UpdateContentParams)
async def update_content(ctx, params: UpdateContentParams) -> Dict[str, Any]:
    """Rewrite the content of an existing lesson section following an instruction."""
    section = await ctx.backend.get(f"/api/teach/sections/{segment(params.section_id)}")
    revised = await _draft(
        ctx,
        SECTION_REVISION_PROMPT.format(instruction=params.modification_instruction),
        str(section.get("content") or ""),
    )
    updated = await ctx.backend.patch(
        f"/api/teach/sections/{segment(params.section_id)}", {"content": to_rich_text(revised)}
    )
    title = updated.get("title") or section.get("title") or "Updated Section"
    lesson_id = updated.get("lesson_id") or section.get("lesson_id")
    url = f"/lessons/{lesson_id}#section-{params.section_id}" if lesson_id else None
    return {
        "success": True,
        "message": f'Updated the content of "{title}".',
        "sectionInfo": {"id": params.section_id, "title": title, "url": url},
    }


# --- Ordering and UI -------------------------------------------------------

class ReorderContentParams(ToolParams):
    item_type: Literal["path", "lesson", "section"]
    parent_id: str = Field(..., description="Base class ID for paths, path ID for lessons, lesson ID for sections.")
    ordered_ids: List[str] = Field(..., min_length=1)


@tool("reorderContent", params=ReorderContentParams)
async def reorder_content(ctx, params: ReorderContentParams) -> Dict[str, Any]:
    """Reorder paths, lessons or sections under a parent."""
    await ctx.backend.post("/api/teach/reorder-items", {
        "itemType": params.item_type,
        "parentId": params.parent_id,
        "orderedIds": params.ordered_ids,
    })
    return {"success": True, "message": f"{params.item_type}s reordered successfully"}


class UIActionParams(ToolParams):
    component_id: str = Field(..., description="ID of the on-screen component to act on.")
    action_type: str = Field(..., description="e.g. click, focus, scroll.")
    additional_params: Optional[Dict[str, Any]] = None


@tool("uiAction", params=UIActionParams)
async def ui_action(ctx, params: UIActionParams) -> Dict[str, Any]:
    """Ask the client to perform an action on an on-screen component."""
    if ctx.snapshot.components and ctx.snapshot.component(params.component_id) is None:
        raise ToolExecutionError(ToolErrorKind.NOT_FOUND, f"No component {params.component_id!r} on screen")
    return {
        "success": True,
        "message": f"Action {params.action_type} performed on component {params.component_id}",
        "details": {
            "componentId": params.component_id,
            "actionType": params.action_type,
            "params": params.additional_params,
        },
    }
