import functools
import logging
import time

logger = logging.getLogger(__name__)


def log_tool(tool_fn, name: str | None = None):
    """Time a tool handler and record one edge_logs row per call."""
    tool_name = name or tool_fn.__name__

    @functools.wraps(tool_fn)
    async def wrapper(ctx, *a, **kw):
        start = time.perf_counter()
        status = "failure"
        try:
            res = await tool_fn(ctx, *a, **kw)
            status = "success"
            return res
        finally:
            elapsed = int((time.perf_counter() - start) * 1000)
            logger.info("tool=%s status=%s latency_ms=%d", tool_name, status, elapsed)
            client = getattr(ctx, "supabase", None)
            if client:
                try:
                    client.table("edge_logs").insert({
                        "session_id": str(getattr(ctx, "session_id", None)),
                        "user_id": str(getattr(ctx, "user_id", None)),
                        "tool": tool_name,
                        "latency_ms": elapsed,
                        "status": status,
                    }).execute()
                except Exception as exc:  # noqa: BLE001
                    logger.warning("Failed to write edge log for %s: %s", tool_name, exc)

    wrapper._tool_name = tool_name
    return wrapper
