# luna_assistant/executor.py
import asyncio
from typing import Dict, List, Optional, Sequence

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from luna_assistant.context import ToolContext
from luna_assistant.exceptions import ToolErrorKind, ToolExecutionError, UpstreamUnavailable
from luna_assistant.models.tool_calls import ToolExecutionResult, ToolInvocationRequest
from luna_assistant.tools import ToolRegistry


def _schema_message(exc: PydanticValidationError) -> str:
    problems = [f"{'.'.join(str(p) for p in e['loc']) or 'arguments'}: {e['msg']}" for e in exc.errors()]
    return "Invalid arguments - " + "; ".join(problems)


class ToolExecutor:
    """Runs one model turn's tool calls concurrently; never raises for a single failure."""

    def __init__(self, registry: ToolRegistry):
        self.registry = registry

    async def execute(
        self,
        invocations: Sequence[ToolInvocationRequest],
        ctx: ToolContext,
        blocked: Optional[Dict[str, str]] = None,
    ) -> List[ToolExecutionResult]:
        blocked = blocked or {}
        results = await asyncio.gather(*(self._run_one(inv, ctx, blocked.get(inv.invocation_id)) for inv in invocations))
        failed = sum(1 for r in results if not r.success)
        logger.info(f"Executed {len(results)} tool call(s), {failed} failed")
        return list(results)

    async def _run_one(
        self, inv: ToolInvocationRequest, ctx: ToolContext, blocked_reason: Optional[str]
    ) -> ToolExecutionResult:
        if blocked_reason:
            return ToolExecutionResult.failed(inv, ToolErrorKind.WORKFLOW_BLOCKED, blocked_reason)

        desc = self.registry.get(inv.tool_name)
        if desc is None:
            logger.warning(f"Model requested unknown tool {inv.tool_name!r}")
            return ToolExecutionResult.failed(inv, ToolErrorKind.UNKNOWN_TOOL, f"No tool named {inv.tool_name!r}")
        if inv.argument_error:
            return ToolExecutionResult.failed(inv, ToolErrorKind.SCHEMA_INVALID, inv.argument_error)

        try:
            params = desc.params.model_validate(inv.arguments)
        except PydanticValidationError as exc:
            logger.info(f"Schema validation failed for {inv.tool_name}: {exc.error_count()} error(s)")
            return ToolExecutionResult.failed(inv, ToolErrorKind.SCHEMA_INVALID, _schema_message(exc))

        try:
            payload = await desc.handler(ctx, params)
        except ToolExecutionError as exc:
            logger.warning(f"Tool {inv.tool_name} failed: {exc.kind.value}: {exc.message}")
            return ToolExecutionResult.failed(inv, exc.kind, exc.message)
        except UpstreamUnavailable as exc:
            logger.warning(f"Tool {inv.tool_name} could not reach the AI service: {exc.message}")
            return ToolExecutionResult.failed(inv, ToolErrorKind.DOWNSTREAM_HTTP, exc.message)
        except Exception as exc:  # noqa: BLE001
            logger.exception(f"Unexpected error in tool {inv.tool_name}: {exc}")
            return ToolExecutionResult.failed(inv, ToolErrorKind.HANDLER_ERROR, f"{type(exc).__name__}: {exc}")

        logger.debug(f"Tool {inv.tool_name} succeeded")
        return ToolExecutionResult.ok(inv, payload)
