#!/usr/bin/env python
"""
Interactive CLI for the Luna assistant.
Type a message and see Luna's reply, citations and suggested buttons; enter 'exit' to quit.
Typing the number of a suggested button clicks it.
"""
import argparse
import asyncio
import json
from pathlib import Path

import httpx

from luna_assistant.config import configure_logging, load_settings
from luna_assistant.context import ToolContext
from luna_assistant.core.llm import ModelGateway
from luna_assistant.exceptions import AssistantError
from luna_assistant.models.conversation import ConversationTurn
from luna_assistant.models.ui_context import UIContextSnapshot
from luna_assistant.orchestrator import AssistantRequest, Orchestrator
from luna_assistant.tools import build_registry
from luna_assistant.tools.backend import BackendClient, resolve_base_url


def _parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="luna-assistant", description=__doc__)
    parser.add_argument("--context", type=Path, help="JSON file with a UI context snapshot")
    parser.add_argument("--persona", default="lunaChat")
    parser.add_argument("--base-url", help="Collaborator API base URL (defaults to LUNA_APP_URL)")
    parser.add_argument("--cookie", help="Session cookie forwarded to collaborator APIs")
    return parser.parse_args(argv)


def _print_reply(reply) -> None:
    print(f"\nLuna: {reply.text}")
    for c in reply.citations:
        print(f"  [source] {c.title}" + (f" <{c.url}>" if c.url else ""))
    for i, b in enumerate(reply.action_buttons, 1):
        print(f"  ({i}) {b.label}")
    print()


async def main(argv=None):
    args = _parse_args(argv)
    settings = load_settings()
    configure_logging(settings)

    snapshot = UIContextSnapshot()
    if args.context:
        snapshot = UIContextSnapshot.model_validate(json.loads(args.context.read_text()))

    gateway = ModelGateway.from_settings(settings)
    orchestrator = Orchestrator(gateway, build_registry())
    base_url = args.base_url or resolve_base_url({}, settings)

    history: list[ConversationTurn] = []
    workflow_state = None
    buttons = []

    print("=== Luna Assistant CLI ===")
    print("Type your message and press enter. Type 'exit' to quit.")
    async with httpx.AsyncClient(timeout=settings.backend_timeout) as http:
        ctx = ToolContext(BackendClient(http, base_url, cookie=args.cookie), snapshot=snapshot, gateway=gateway)
        while True:
            text = input("> ").strip()
            if text.lower() in {"exit", "quit"}:
                print("Session ended.")
                break
            if not text:
                continue

            button_data = None
            if text.isdigit() and 0 < int(text) <= len(buttons):
                clicked = buttons[int(text) - 1]
                button_data = {"buttonAction": clicked.action, "buttonId": clicked.id, **clicked.data}
                text = clicked.label

            request = AssistantRequest(
                message=text,
                snapshot=snapshot,
                history=list(history),
                persona=args.persona,
                button_data=button_data,
                workflow_state=workflow_state,
            )
            try:
                reply = await orchestrator.run(request, ctx)
            except AssistantError as exc:
                print(f"[error] {exc.message}")
                continue

            _print_reply(reply)
            history += [ConversationTurn(role="user", content=text),
                        ConversationTurn(role="assistant", content=reply.text)]
            workflow_state = reply.workflow_state
            buttons = reply.action_buttons

    await gateway.close()


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
