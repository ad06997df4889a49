"""Course outline generation and knowledge-base course setup."""
from typing import Any, Dict, Literal, Optional

from pydantic import Field

from luna_assistant.exceptions import ToolErrorKind, ToolExecutionError
from luna_assistant.tools import ToolParams, tool
from luna_assistant.tools.backend import segment

GENERATION_PATH = "/api/teach/course-generation"

OUTLINE_ACTIONS = [
    {"type": "saveOutline", "label": "Save as Base Class"},
    {"type": "enhanceWithKB", "label": "Enhance with Knowledge Base"},
]


class GenerateOutlineParams(ToolParams):
    prompt: str = Field(..., description="What the course should cover.")
    grade_level: Optional[str] = None
    length_in_weeks: Optional[int] = Field(None, ge=1)


@tool("generateCourseOutline", params=GenerateOutlineParams)
async def generate_course_outline(ctx, params: GenerateOutlineParams) -> Dict[str, Any]:
    """Generate a course outline from general knowledge. Nothing is saved until the user asks."""
    outline = await ctx.backend.post(GENERATION_PATH, {
        "prompt": params.prompt,
        "gradeLevel": params.grade_level,
        "lengthInWeeks": params.length_in_weeks,
        "generationMode": "general",
    })
    return {
        "success": True,
        "message": f'Generated a course outline for "{outline.get("title") or "your course"}".',
        "outlineData": outline,
        "isOutline": True,
        "actions": OUTLINE_ACTIONS,
    }


class EnhancedGenerationParams(ToolParams):
    base_class_id: str
    title: str
    description: str
    generation_mode: Literal["kb_only", "kb_priority", "kb_supplemented", "general"]
    additional_params: Optional[Dict[str, Any]] = None


@tool("enhancedCourseGeneration", params=EnhancedGenerationParams)
async def enhanced_course_generation(ctx, params: EnhancedGenerationParams) -> Dict[str, Any]:
    """Generate a course for a base class, grounded in its knowledge base according to the mode."""
    body = {
        "baseClassId": params.base_class_id,
        "title": params.title,
        "description": params.description,
        "generationMode": params.generation_mode,
        **(params.additional_params or {}),
    }
    result = await ctx.backend.post(GENERATION_PATH, body)
    mode = params.generation_mode.replace("_", " ")

    if result.get("jobId"):
        return {
            "success": True,
            "message": f"Started generating the course using the {mode} approach.",
            "jobId": result["jobId"],
            "basicOutline": result.get("basicOutline"),
            "generationMode": result.get("generationMode", params.generation_mode),
            "isOutline": True,
            "actions": [
                {"type": "checkJobStatus", "label": "Check Generation Status"},
                {"type": "saveBasicOutline", "label": "Save Basic Outline Now"},
            ],
        }
    return {
        "success": True,
        "message": f"Generated the course outline using the {mode} approach.",
        "outlineData": result,
        "generationMode": result.get("generationMode", params.generation_mode),
        "isOutline": True,
        "actions": OUTLINE_ACTIONS,
    }


class CheckJobStatusParams(ToolParams):
    job_id: str


_STATUS_MESSAGES = {
    "completed": ("Course generation is complete.", [
        {"type": "viewGeneratedCourse", "label": "View Generated Course"},
        {"type": "openInDesigner", "label": "Open in Designer"},
    ]),
    "processing": ("The course is still being generated ({progress}% complete).", [
        {"type": "checkJobStatus", "label": "Check Again"},
    ]),
    "failed": ("Course generation failed: {error}.", [
        {"type": "retryGeneration", "label": "Retry Generation"},
        {"type": "useBasicOutline", "label": "Use Basic Outline"},
    ]),
}


@tool("checkJobStatus", params=CheckJobStatusParams)
async def check_job_status(ctx, params: CheckJobStatusParams) -> Dict[str, Any]:
    """Check the progress of a knowledge-base course generation job."""
    status = await ctx.backend.get(f"/api/knowledge-base/generation-status/{segment(params.job_id)}")
    state = status.get("status")
    template, actions = _STATUS_MESSAGES.get(
        state, ("Job status: {status}. Please check again in a moment.", [{"type": "checkJobStatus", "label": "Check Again"}])
    )
    message = template.format(
        progress=status.get("progress") or 0,
        error=status.get("error") or "Unknown error",
        status=state,
    )
    return {
        "success": True,
        "message": message,
        "jobId": params.job_id,
        "jobStatus": status,
        "actions": [dict(a, jobId=params.job_id) for a in actions],
    }


class CollectSourcesParams(ToolParams):
    course_title: str
    course_description: str


@tool("collectKnowledgeBaseSources", params=CollectSourcesParams)
async def collect_knowledge_base_sources(ctx, params: CollectSourcesParams) -> Dict[str, Any]:
    """Create a course foundation and send the user to upload source material for it."""
    user = (await ctx.backend.get("/api/auth/user")).get("user") or {}
    profile = (await ctx.backend.get("/api/auth/profile")).get("profile") or {}
    created = await ctx.backend.post("/api/knowledge-base/create-base-class", {
        "name": params.course_title,
        "description": params.course_description,
        "organisationId": profile.get("organisation_id"),
        "userId": user.get("id"),
    })
    base_class_id = created.get("baseClassId")
    if not base_class_id:
        raise ToolExecutionError(ToolErrorKind.DOWNSTREAM_HTTP, "No base class ID returned from creation")

    url = f"/teach/knowledge-base/create?baseClassId={segment(base_class_id)}"
    return {
        "success": True,
        "message": f'Created the "{params.course_title}" course foundation. Upload materials next.',
        "baseClassId": base_class_id,
        "redirectUrl": url,
        "actions": [{"type": "redirectToKB", "label": "Open KB Course Generator", "url": url}],
    }
