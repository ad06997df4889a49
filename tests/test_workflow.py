from luna_assistant.core.enums import EntityLevel, WorkflowStage
from luna_assistant.exceptions import ToolErrorKind
from luna_assistant.models.tool_calls import ToolExecutionResult
from luna_assistant.models.workflow_state import WorkflowState
from luna_assistant.workflow import WorkflowGuard, detect_hierarchical_ask, is_affirmative, is_negative

from conftest import BASE_CLASS_ID, LESSON_ID, NEW_PATH_ID, PATH_ID, call


def _created_path(path_id=NEW_PATH_ID, title="Intro"):
    return ToolExecutionResult.ok(
        call("createPath", baseClassId=BASE_CLASS_ID, title=title, description="d"),
        {"success": True, "path": {"id": path_id, "title": title}},
    )


def _awaiting(**kw):
    fields = dict(stage=WorkflowStage.AWAITING_CONFIRMATION, parent_level=EntityLevel.PATH,
                  parent_ids=[NEW_PATH_ID], parent_title="Intro", remaining_levels=[EntityLevel.LESSON],
                  created_ids=[NEW_PATH_ID])
    fields.update(kw)
    return WorkflowState(**fields)


def test_detects_parent_with_children():
    state = detect_hierarchical_ask("Create a path called Intro with three lessons: 'Basics', 'Practice' and 'Review'")
    assert state.stage is WorkflowStage.PARENT_PENDING
    assert state.parent_level is EntityLevel.PATH
    assert state.parent_title == "Intro"
    assert state.child_level is EntityLevel.LESSON
    assert state.pending_children == ["Basics", "Practice", "Review"]


def test_detects_three_levels_and_quoted_title():
    state = detect_hierarchical_ask('Build a path "Genetics" with lessons and sections for each')
    assert state.parent_title == "Genetics"
    assert state.remaining_levels == [EntityLevel.LESSON, EntityLevel.SECTION]


def test_single_item_request_is_not_hierarchical():
    assert detect_hierarchical_ask("Create a path called Intro") is None
    assert detect_hierarchical_ask("What lessons are in this path?") is None


def test_affirmative_and_negative_replies():
    assert is_affirmative("Yes please")
    assert is_affirmative("anything", {"buttonAction": "confirm_workflow"})
    assert not is_affirmative("What is a lesson?")
    assert is_negative("not now, thanks")
    assert is_negative("ok", {"action": "decline_workflow"})


def test_begin_confirms_and_declines():
    guard = WorkflowGuard()
    assert guard.begin("Yes, go ahead", _awaiting()).stage is WorkflowStage.CONFIRMED
    assert guard.begin("Please add the lessons", _awaiting()).stage is WorkflowStage.CONFIRMED
    assert guard.begin("No thanks", _awaiting()) is None
    assert guard.begin("How do I grade quizzes?", _awaiting()) is None


def test_new_hierarchical_ask_replaces_earlier_workflow():
    guard = WorkflowGuard()
    message = "Create a path called 'Algebra' with lessons 'Sets' and 'Functions'"
    for stage in (WorkflowStage.AWAITING_CONFIRMATION, WorkflowStage.CONFIRMED):
        state = guard.begin(message, _awaiting(stage=stage))
        assert state.stage is WorkflowStage.PARENT_PENDING
        assert state.parent_title == "Algebra"
        assert state.parent_ids == []
        assert state.pending_children == ["Sets", "Functions"]

        lesson = call("createLesson", "l", pathId=NEW_PATH_ID, title="Sets", description="d")
        assert "not confirmed" in guard.review([lesson], state, {NEW_PATH_ID})["l"]


def test_children_in_same_batch_as_parent_are_blocked():
    guard = WorkflowGuard()
    state = detect_hierarchical_ask("Create a path called Intro with two lessons")
    create_path = call("createPath", "p", baseClassId=BASE_CLASS_ID, title="Intro", description="d")
    lesson = call("createLesson", "l", pathId="pending", title="Basics", description="d")

    blocked = guard.review([create_path, lesson], state, {BASE_CLASS_ID})
    assert set(blocked) == {"l"}


def test_children_wait_for_confirmation():
    guard = WorkflowGuard()
    lesson = call("createLesson", "l", pathId=NEW_PATH_ID, title="Basics", description="d")
    assert "not confirmed" in guard.review([lesson], _awaiting(), set())["l"]

    confirmed = _awaiting(stage=WorkflowStage.CONFIRMED)
    assert guard.review([lesson], confirmed, set()) == {}


def test_only_next_level_runs_after_confirmation():
    guard = WorkflowGuard()
    state = _awaiting(stage=WorkflowStage.CONFIRMED, remaining_levels=[EntityLevel.LESSON, EntityLevel.SECTION])
    section = call("addLessonSection", "s", lessonId=LESSON_ID, title="t", contentDescription="c")
    blocked = guard.review([section], state, {LESSON_ID})
    assert "Only lessons may be created" in blocked["s"]


def test_synthesized_ids_are_blocked():
    guard = WorkflowGuard()
    fabricated = call("createLesson", "l", pathId=f"{BASE_CLASS_ID}_module_1", title="t", description="d")
    blocked = guard.review([fabricated], None, {BASE_CLASS_ID})
    assert "looks constructed" in blocked["l"]


def test_unknown_ids_pass_to_backend_unless_strict():
    unknown = call("updateLesson", "u", lessonId="11111111-2222-4333-8444-555555555555", title="t")
    assert WorkflowGuard().review([unknown], None, {BASE_CLASS_ID}) == {}
    assert "does not appear" in WorkflowGuard(strict_provenance=True).review([unknown], None, set())["u"]


def test_read_only_tools_are_not_checked():
    guard = WorkflowGuard(strict_provenance=True)
    assert guard.review([call("fetchBaseClassStructure", "f", baseClassId="anything")], None, set()) == {}


def test_advance_single_create_offers_children():
    state = WorkflowGuard().advance(None, [_created_path()])
    assert state.stage is WorkflowStage.AWAITING_CONFIRMATION
    assert state.parent_ids == [NEW_PATH_ID]
    assert state.child_level is EntityLevel.LESSON


def test_advance_from_pending_keeps_plan():
    pending = detect_hierarchical_ask("Create a path called Intro with lessons 'A' and 'B'")
    state = WorkflowGuard().advance(pending, [_created_path()])
    assert state.stage is WorkflowStage.AWAITING_CONFIRMATION
    assert state.pending_children == ["A", "B"]
    assert state.parent_title == "Intro"


def test_advance_failed_create_leaves_state_alone():
    pending = detect_hierarchical_ask("Create a path called Intro with lessons")
    failed = ToolExecutionResult.failed(call("createPath"), ToolErrorKind.DOWNSTREAM_HTTP, "boom")
    assert WorkflowGuard().advance(pending, [failed]) == pending
    assert WorkflowGuard().advance(None, [failed]) is None


def test_advance_confirmed_moves_down_or_finishes():
    guard = WorkflowGuard()
    lessons = [
        ToolExecutionResult.ok(call("createLesson", f"l{i}", pathId=PATH_ID, title=f"L{i}", description="d"),
                               {"lesson": {"id": f"lesson-{i}", "title": f"L{i}"}})
        for i in range(2)
    ]
    done = guard.advance(_awaiting(stage=WorkflowStage.CONFIRMED), lessons)
    assert done is None

    deeper = _awaiting(stage=WorkflowStage.CONFIRMED, remaining_levels=[EntityLevel.LESSON, EntityLevel.SECTION])
    nxt = guard.advance(deeper, lessons)
    assert nxt.parent_level is EntityLevel.LESSON
    assert nxt.parent_ids == ["lesson-0", "lesson-1"]
    assert nxt.child_level is EntityLevel.SECTION


def test_state_round_trips_through_camel_case():
    state = _awaiting(pending_children=["A"])
    dumped = state.dump()
    assert dumped["parentIds"] == [NEW_PATH_ID]
    assert dumped["stage"] == "awaiting_confirmation"
    assert WorkflowState.model_validate(dumped) == state
