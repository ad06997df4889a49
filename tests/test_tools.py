import pytest

from luna_assistant.exceptions import ToolErrorKind
from luna_assistant.executor import ToolExecutor
from luna_assistant.tools import build_registry
from luna_assistant.tools.backend import segment
from luna_assistant.tools.content import to_rich_text
from luna_assistant.tools.knowledge_base import NO_RESULTS_MESSAGE

from conftest import BASE_CLASS_ID, LESSON_ID, PATH_ID, FakeBackend, ScriptedGateway, call


@pytest.fixture
def executor():
    return ToolExecutor(build_registry())


async def _run(executor, ctx, inv):
    [result] = await executor.execute([inv], ctx)
    return result


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    [{"chunk_id": "c1", "title": "Photosynthesis", "snippet": "Light...", "url": "/kb/1"}],
    {"results": [{"id": "c1", "title": "Photosynthesis"}]},
])
async def test_search_accepts_both_response_shapes(executor, make_ctx, body):
    backend = FakeBackend({("POST", "/api/knowledge-base/search"): (200, body)})
    result = await _run(executor, make_ctx(backend), call("search", query="photosynthesis"))

    assert result.success
    [hit] = result.payload["results"]
    assert hit["id"] == "c1" and hit["title"] == "Photosynthesis"
    assert backend.bodies("POST", "/api/knowledge-base/search") == [{"query": "photosynthesis", "limit": 5}]


@pytest.mark.asyncio
async def test_search_without_hits_says_so(executor, make_ctx):
    backend = FakeBackend({("POST", "/api/knowledge-base/search"): (200, {"results": []})})
    result = await _run(executor, make_ctx(backend), call("search", query="quantum"))
    assert result.payload == {"results": [], "message": NO_RESULTS_MESSAGE}


@pytest.mark.asyncio
async def test_create_lesson_appends_objectives(executor, make_ctx):
    path = f"/api/teach/paths/{PATH_ID}/lessons"
    backend = FakeBackend({("POST", path): (201, {"id": LESSON_ID, "title": "Cells"})})
    result = await _run(executor, make_ctx(backend), call(
        "createLesson", pathId=PATH_ID, title="Cells", description="Intro to cells", objectives="Name organelles",
    ))

    assert result.payload["lesson"]["id"] == LESSON_ID
    [sent] = backend.bodies("POST", path)
    assert sent["description"] == "Intro to cells\n\nLearning Objectives:\nName organelles"


@pytest.mark.asyncio
async def test_update_path_rejects_module_identifiers(executor, make_ctx, fake_backend):
    result = await _run(executor, make_ctx(fake_backend), call("updatePath", pathId=f"{BASE_CLASS_ID}_module_1", title="X"))
    assert result.failure.error_kind is ToolErrorKind.SCHEMA_INVALID
    assert fake_backend.requests == []


@pytest.mark.asyncio
async def test_add_lesson_section_drafts_then_saves(executor, make_ctx):
    path = f"/api/teach/lessons/{LESSON_ID}/sections"
    backend = FakeBackend({("POST", path): (201, {"id": "sec-1", "title": "Mitosis"})})
    gateway = ScriptedGateway()
    result = await _run(executor, make_ctx(backend, gateway=gateway), call(
        "addLessonSection", lessonId=LESSON_ID, title="Mitosis", contentDescription="Phases of mitosis",
    ))

    assert result.success
    assert result.payload["sectionInfo"] == {"id": "sec-1", "title": "Mitosis", "url": f"/lessons/{LESSON_ID}#section-sec-1"}
    assert "Phases of mitosis" in gateway.drafts[0][0]
    [sent] = backend.bodies("POST", path)
    assert sent["content"]["type"] == "doc"
    assert sent["section_type"] == "text-editor"


@pytest.mark.asyncio
async def test_add_lesson_section_without_model_fails_cleanly(executor, make_ctx, fake_backend):
    result = await _run(executor, make_ctx(fake_backend), call(
        "addLessonSection", lessonId=LESSON_ID, title="Mitosis", contentDescription="Phases",
    ))
    assert result.failure.error_kind is ToolErrorKind.HANDLER_ERROR
    assert fake_backend.requests == []


@pytest.mark.asyncio
async def test_delete_of_missing_lesson_is_not_found(executor, make_ctx, fake_backend):
    result = await _run(executor, make_ctx(fake_backend), call("deleteLesson", lessonId=LESSON_ID))
    assert result.failure.error_kind is ToolErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_ids_are_quoted_as_one_path_segment(executor, make_ctx, fake_backend):
    await _run(executor, make_ctx(fake_backend), call("deleteLesson", lessonId="../../admin/users"))
    [request] = fake_backend.requests
    assert request.url.raw_path == b"/api/teach/lessons/..%2F..%2Fadmin%2Fusers"
    assert segment("a b/c") == "a%20b%2Fc"


@pytest.mark.asyncio
async def test_fetch_structure_lists_lesson_ids(executor, make_ctx):
    backend = FakeBackend({("GET", f"/api/teach/base-classes/{BASE_CLASS_ID}"): (200, {
        "id": BASE_CLASS_ID,
        "name": "Biology",
        "paths": [{"id": PATH_ID, "lessons": [{"id": LESSON_ID}, {"id": "l2"}]}, {"id": "p2", "lessons": []}],
    })})
    result = await _run(executor, make_ctx(backend), call("fetchBaseClassStructure", baseClassId=BASE_CLASS_ID))
    assert result.payload["allLessonIds"] == [LESSON_ID, "l2"]
    assert result.payload["pathIds"] == [PATH_ID, "p2"]


@pytest.mark.asyncio
async def test_enhanced_generation_with_job(executor, make_ctx):
    backend = FakeBackend({("POST", "/api/teach/course-generation"): (200, {"jobId": "job-9", "basicOutline": {"title": "Bio"}})})
    result = await _run(executor, make_ctx(backend), call(
        "enhancedCourseGeneration", baseClassId=BASE_CLASS_ID, title="Bio", description="d", generationMode="kb_priority",
    ))
    assert result.payload["jobId"] == "job-9"
    assert result.payload["isOutline"] is True
    assert [a["type"] for a in result.payload["actions"]] == ["checkJobStatus", "saveBasicOutline"]


@pytest.mark.asyncio
async def test_check_job_status_messages(executor, make_ctx):
    backend = FakeBackend({("GET", "/api/knowledge-base/generation-status/job-9"): (200, {"status": "processing", "progress": 40})})
    result = await _run(executor, make_ctx(backend), call("checkJobStatus", jobId="job-9"))
    assert "40% complete" in result.payload["message"]
    assert result.payload["actions"] == [{"type": "checkJobStatus", "label": "Check Again", "jobId": "job-9"}]


@pytest.mark.asyncio
async def test_ui_action_checks_component_is_on_screen(executor, make_ctx, fake_backend, teacher_snapshot):
    ctx = make_ctx(fake_backend, snapshot=teacher_snapshot)
    ok = await _run(executor, ctx, call("uiAction", componentId="tree", actionType="click"))
    missing = await _run(executor, ctx, call("uiAction", componentId="nope", actionType="click"))
    assert ok.payload["details"]["componentId"] == "tree"
    assert missing.failure.error_kind is ToolErrorKind.NOT_FOUND


def test_rich_text_blocks():
    doc = to_rich_text("# Title\n\nA paragraph.\n\n- point")
    assert [b["type"] for b in doc["content"]] == ["heading", "paragraph", "bulletList"]
    assert doc["content"][0]["attrs"] == {"level": 1}
