from luna_assistant.core.enums import EntityLevel, WorkflowStage
from luna_assistant.exceptions import ToolErrorKind
from luna_assistant.models.tool_calls import ToolExecutionResult
from luna_assistant.models.workflow_state import WorkflowState
from luna_assistant.response_assembler import (
    FALLBACK_NOTE,
    MAX_BUTTONS,
    assemble_reply,
    extract_action_buttons,
    extract_citations,
    extract_real_time_updates,
)

from conftest import BASE_CLASS_ID, NEW_PATH_ID, call


def _ok(name, payload, **args):
    return ToolExecutionResult.ok(call(name, **args), payload)


def _search(results):
    return _ok("search", {"results": results}, query="q")


def test_citations_from_search_are_deduplicated():
    hit = {"id": "c1", "title": "Cells", "url": "/kb/c1"}
    results = [_search([hit, hit]), _search([hit])]
    citations = extract_citations(results)
    assert [(c.id, c.title, c.url) for c in citations] == [("c1", "Cells", "/kb/c1")]
    assert extract_citations(results) == citations


def test_failed_results_produce_no_citations():
    failed = ToolExecutionResult.failed(call("search", query="q"), ToolErrorKind.DOWNSTREAM_HTTP, "down")
    assert extract_citations([failed]) == []


def test_created_path_is_cited_and_announced():
    created = _ok("createPath", {"path": {"id": NEW_PATH_ID, "title": "Intro"}}, baseClassId=BASE_CLASS_ID)
    [citation] = extract_citations([created])
    assert citation.title == "New Path: Intro"

    [update] = extract_real_time_updates([created])
    assert (update.entity, update.entity_id, update.type) == ("path", NEW_PATH_ID, "create")


def test_reply_mentions_created_id_when_model_omits_it():
    created = _ok("createPath", {"path": {"id": NEW_PATH_ID, "title": "Intro"}})
    reply = assemble_reply("Done! The path is ready.", [created])
    assert f"Path ID: {NEW_PATH_ID}" in reply.text
    again = assemble_reply(f"Created path Intro with ID {NEW_PATH_ID}.", [created])
    assert again.text.count(NEW_PATH_ID) == 1


def test_empty_search_gets_fallback_acknowledgement():
    reply = assemble_reply("Photosynthesis converts light into chemical energy.", [_search([])])
    assert reply.text.endswith(FALLBACK_NOTE)
    assert reply.has_tool_results is True
    assert reply.citations == []

    acknowledged = assemble_reply("I couldn't find anything in your materials, but generally...", [_search([])])
    assert FALLBACK_NOTE not in acknowledged.text


def test_failed_search_also_counts_as_fallback():
    failed = ToolExecutionResult.failed(call("search", query="q"), ToolErrorKind.DOWNSTREAM_HTTP, "down")
    assert assemble_reply("Here is what I know.", [failed]).text.endswith(FALLBACK_NOTE)


def test_workflow_state_buttons_take_precedence_over_generic():
    state = WorkflowState(stage=WorkflowStage.AWAITING_CONFIRMATION, parent_level=EntityLevel.PATH,
                          parent_ids=[NEW_PATH_ID], remaining_levels=[EntityLevel.LESSON])
    buttons = extract_action_buttons("Would you like me to add lessons?", [], state)

    assert [b.id for b in buttons] == ["workflow-confirm-lesson", "workflow-decline-lesson"]
    confirm = buttons[0]
    assert confirm.label == "Yes, add lessons"
    assert confirm.data["parentIds"] == [NEW_PATH_ID]
    assert confirm.data["nextTool"] == "createLesson"
    assert confirm.data["workflowState"]["stage"] == "awaiting_confirmation"


def test_text_pattern_buttons_when_no_state():
    text = f"I have successfully created the path 'Intro' with ID {NEW_PATH_ID}. Would you like me to add lessons?"
    [button] = extract_action_buttons(text, [])
    assert button.id == "created-path-add-lessons"
    assert button.data["parentIds"] == [NEW_PATH_ID]


def test_generic_buttons_only_as_last_resort():
    assert [b.id for b in extract_action_buttons("Shall I summarize this lesson?", [])] == ["generic-yes", "generic-no"]
    assert extract_action_buttons("Here is the summary.", []) == []


def test_buttons_are_capped():
    actions = [{"type": f"act{i}", "label": f"Action {i}"} for i in range(8)]
    buttons = extract_action_buttons("Pick one", [_ok("checkJobStatus", {"actions": actions}, jobId="j")])
    assert len(buttons) == MAX_BUTTONS
    assert buttons[0].style == "primary"
    assert buttons[0].data == {"toolName": "checkJobStatus"}


def test_outline_reply():
    outline = {"title": "Ecology", "modules": []}
    reply = assemble_reply("", [_ok("generateCourseOutline", {"message": "Generated a course outline.",
                                                                "outlineData": outline, "isOutline": True},
                                    prompt="ecology")])
    assert reply.is_outline and reply.outline_data == outline
    assert reply.text == "Generated a course outline."
    assert reply.tools_used == ["generateCourseOutline"]
