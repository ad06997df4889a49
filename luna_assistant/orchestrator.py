# luna_assistant/orchestrator.py
"""
Orchestration loop: prompt -> first completion -> (tools -> second completion) -> reply.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from loguru import logger

from luna_assistant.context import ToolContext
from luna_assistant.context_compressor import compress
from luna_assistant.core.enums import OrchestrationState
from luna_assistant.core.llm import ModelGateway
from luna_assistant.exceptions import AssistantError
from luna_assistant.executor import ToolExecutor
from luna_assistant.models.conversation import ConversationTurn
from luna_assistant.models.reply import AssistantReply
from luna_assistant.models.tool_calls import ToolExecutionResult
from luna_assistant.models.ui_context import UIContextSnapshot
from luna_assistant.models.workflow_state import WorkflowState
from luna_assistant.prompt_builder import build_system_prompt
from luna_assistant.response_assembler import assemble_reply
from luna_assistant.tools import ToolRegistry
from luna_assistant.workflow import WorkflowGuard

STUDENT_TOOLS = ("search",)


@dataclass
class AssistantRequest:
    """Everything one inbound chat message carries."""
    message: str
    snapshot: UIContextSnapshot
    history: List[ConversationTurn] = field(default_factory=list)
    persona: Optional[str] = None
    button_data: Optional[Dict[str, Any]] = None
    workflow_state: Optional[WorkflowState] = None
    user_profile: Optional[Dict[str, Any]] = None


@dataclass
class OrchestrationRun:
    """Per-request record: transitions taken and tool results collected."""
    states: List[OrchestrationState] = field(default_factory=list)
    results: List[ToolExecutionResult] = field(default_factory=list)
    reply: Optional[AssistantReply] = None

    @property
    def state(self) -> OrchestrationState | None:
        return self.states[-1] if self.states else None

    def enter(self, state: OrchestrationState) -> None:
        logger.debug(f"Orchestration -> {state.value}")
        self.states.append(state)


class Orchestrator:
    """One instance per process; every call to run() is independent."""

    def __init__(self, gateway: ModelGateway, registry: ToolRegistry, guard: WorkflowGuard | None = None):
        self.gateway = gateway
        self.registry = registry
        self.guard = guard or WorkflowGuard()
        self.executor = ToolExecutor(registry)

    async def run(self, request: AssistantRequest, ctx: ToolContext) -> AssistantReply:
        return (await self.run_traced(request, ctx)).reply

    async def run_traced(
        self, request: AssistantRequest, ctx: ToolContext, run: OrchestrationRun | None = None
    ) -> OrchestrationRun:
        run = run if run is not None else OrchestrationRun()
        try:
            await self._run(request, ctx, run)
        except AssistantError:
            run.enter(OrchestrationState.FAILED)
            if run.results:
                logger.warning(f"Run failed after {len(run.results)} tool call(s) already ran; they are not rolled back")
            raise
        return run

    async def _run(self, request: AssistantRequest, ctx: ToolContext, run: OrchestrationRun) -> None:
        # --- 1. Build prompt ---
        run.enter(OrchestrationState.BUILDING_PROMPT)
        compressed = compress(request.snapshot)
        workflow = self.guard.begin(request.message, request.workflow_state, request.button_data)
        system = build_system_prompt(
            compressed,
            request.persona,
            request.message,
            history=request.history,
            button_data=request.button_data,
            workflow_state=workflow,
            user_profile=request.user_profile,
        )
        messages = [system, *request.history, ConversationTurn(role="user", content=request.message)]
        tools = self.registry.list_tools(STUDENT_TOOLS if compressed.interface_role == "student" else None)

        # --- 2. First completion ---
        run.enter(OrchestrationState.FIRST_COMPLETION)
        first = await self.gateway.complete(messages, tools=tools)
        if first.kind == "text" or not first.calls:
            logger.info("First completion answered without tools")
            run.enter(OrchestrationState.ASSEMBLING_REPLY)
            run.reply = assemble_reply(first.content, (), workflow)
            run.enter(OrchestrationState.REPLY_READY)
            return

        # --- 3. Guard + execute ---
        run.enter(OrchestrationState.EXECUTING_TOOLS)
        logger.info(f"Model requested tools: {[c.tool_name for c in first.calls]}")
        blocked = self.guard.review(first.calls, workflow, compressed.known_ids)
        run.results = await self.executor.execute(first.calls, ctx, blocked)
        workflow = self.guard.advance(workflow, run.results)

        # --- 4. Second completion (no tools) ---
        if not run.results:
            raise AssistantError("Tool batch produced no results; refusing the second completion")
        run.enter(OrchestrationState.SECOND_COMPLETION)
        follow_up = messages + [
            ConversationTurn(role="assistant", content=first.content, tool_calls=[c.to_openai() for c in first.calls])
        ] + [
            ConversationTurn(role="tool", content=r.to_tool_content(), tool_invocation_id=r.invocation_id)
            for r in run.results
        ]
        second = await self.gateway.complete(follow_up)

        # --- 5. Assemble ---
        run.enter(OrchestrationState.ASSEMBLING_REPLY)
        run.reply = assemble_reply(second.content, run.results, workflow)
        run.enter(OrchestrationState.REPLY_READY)
