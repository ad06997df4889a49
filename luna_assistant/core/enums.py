"""
Enumerations shared by the orchestration loop and the workflow guard.
"""
from enum import Enum


class OrchestrationState(str, Enum):
    """States a single orchestration pass moves through."""
    BUILDING_PROMPT   = "building_prompt"
    FIRST_COMPLETION  = "first_completion"
    EXECUTING_TOOLS   = "executing_tools"
    SECOND_COMPLETION = "second_completion"
    ASSEMBLING_REPLY  = "assembling_reply"
    REPLY_READY       = "reply_ready"   # terminal
    FAILED            = "failed"        # terminal


class Persona(str, Enum):
    LUNA_CHAT      = "lunaChat"
    CLASS_COPILOT  = "classCoPilot"
    TEACHING_COACH = "teachingCoach"
    TUTOR          = "tutor"
    PEER           = "peer"
    EXAM_COACH     = "examCoach"

    @classmethod
    def parse(cls, value: str | None) -> "Persona | None":
        """Return the matching persona, or None for keys we have no block for."""
        try:
            return cls(value or cls.LUNA_CHAT.value)
        except ValueError:
            return None


class WorkflowStage(str, Enum):
    PARENT_PENDING        = "parent_pending"         # hierarchical ask seen, parent not created
    AWAITING_CONFIRMATION = "awaiting_confirmation"  # parent created, waiting on the user
    CONFIRMED             = "confirmed"              # user agreed, children may be created


class EntityLevel(str, Enum):
    """Levels of the course hierarchy that the assistant can create."""
    PATH    = "path"
    LESSON  = "lesson"
    SECTION = "section"

    @property
    def child(self) -> "EntityLevel | None":
        return {EntityLevel.PATH: EntityLevel.LESSON,
                EntityLevel.LESSON: EntityLevel.SECTION}.get(self)

    @property
    def create_tool(self) -> str:
        return {EntityLevel.PATH: "createPath",
                EntityLevel.LESSON: "createLesson",
                EntityLevel.SECTION: "addLessonSection"}[self]

    @property
    def parent_arg(self) -> str | None:
        """Argument of the create tool that names the parent entity."""
        return {EntityLevel.PATH: "baseClassId",
                EntityLevel.LESSON: "pathId",
                EntityLevel.SECTION: "lessonId"}[self]

    @property
    def plural(self) -> str:
        return f"{self.value}s"
