from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from pydantic import ValidationError as PydanticValidationError

from luna_assistant.api_models import ChatRequest, ChatResponse
from luna_assistant.context import ToolContext
from luna_assistant.dependencies import get_orchestrator, get_user_profile, resolve_user_id
from luna_assistant.exceptions import ValidationError
from luna_assistant.orchestrator import AssistantRequest
from luna_assistant.tools.backend import BackendClient, resolve_base_url

logger = logging.getLogger(__name__)

router = APIRouter()


def _validation_details(exc: PydanticValidationError) -> dict:
    return {"errors": [
        {"loc": ".".join(str(p) for p in e["loc"]), "msg": e["msg"]} for e in exc.errors()
    ]}


@router.post("/luna/chat", tags=["Luna"])
async def luna_chat(request: Request):
    orchestrator = get_orchestrator(request)
    settings = request.app.state.settings

    # Body is parsed by hand so malformed input is a 400, not FastAPI's 422.
    try:
        body = await request.json()
    except ValueError as exc:
        raise ValidationError("Request body must be valid JSON") from exc
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        chat = ChatRequest.model_validate(body)
        workflow_state = chat.resolved_workflow_state()
    except PydanticValidationError as exc:
        raise ValidationError("Invalid message, context or history", details=_validation_details(exc)) from exc

    supabase = request.app.state.supabase
    user_id = resolve_user_id(request, supabase, settings)
    backend = BackendClient(
        request.app.state.http,
        resolve_base_url(request.headers, settings),
        cookie=request.headers.get("cookie"),
    )
    ctx = ToolContext(
        backend=backend,
        snapshot=chat.context,
        gateway=orchestrator.gateway,
        supabase=supabase,
        session_id=request.headers.get("x-session-id"),
        user_id=user_id,
    )
    logger.info("Luna chat: persona=%s components=%d history=%d",
                chat.persona, len(chat.context.components), len(chat.messages))

    reply = await orchestrator.run(
        AssistantRequest(
            message=chat.message,
            snapshot=chat.context,
            history=chat.messages,
            persona=chat.persona,
            button_data=chat.button_data,
            workflow_state=workflow_state,
            user_profile=get_user_profile(supabase, user_id),
        ),
        ctx,
    )
    return ChatResponse.from_reply(reply).to_json()
