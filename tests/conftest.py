import json
from typing import Any, Callable, Dict, List, Tuple

import httpx
import pytest

from luna_assistant.context import ToolContext
from luna_assistant.models.tool_calls import Completion, ToolInvocationRequest
from luna_assistant.models.ui_context import UIContextSnapshot
from luna_assistant.tools.backend import BackendClient

BASE_CLASS_ID = "0b6f3c1e-5d2a-4c8e-9f10-2a3b4c5d6e7f"
PATH_ID = "7d1e2f3a-4b5c-4d6e-8f90-a1b2c3d4e5f6"
NEW_PATH_ID = "c0ffee00-1234-4abc-8def-0123456789ab"
LESSON_ID = "5a4b3c2d-1e0f-4a9b-8c7d-6e5f4a3b2c1d"


class ScriptedGateway:
    """Stands in for ModelGateway: returns queued completions and records every call."""

    def __init__(self, *completions):
        self.completions = list(completions)
        self.calls: List[Dict[str, Any]] = []
        self.drafts: List[Tuple[str, str]] = []

    async def complete(self, messages, tools=None):
        self.calls.append({"messages": list(messages), "tools": list(tools or [])})
        item = self.completions.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def draft_text(self, system, user, max_tokens=2000):
        self.drafts.append((system, user))
        return "# Overview\n\nDrafted body."

    async def close(self):
        pass


def call(name: str, invocation_id: str = None, **arguments) -> ToolInvocationRequest:
    return ToolInvocationRequest(
        invocation_id=invocation_id or f"call_{name}",
        tool_name=name,
        arguments=arguments,
        raw_arguments=json.dumps(arguments),
    )


def tool_turn(*calls: ToolInvocationRequest) -> Completion:
    return Completion.tool_calls(list(calls))


def text_turn(content: str) -> Completion:
    return Completion.text(content)


Route = Callable[[httpx.Request], httpx.Response]


class FakeBackend:
    """httpx.MockTransport keyed by (method, path); records requests in order."""

    def __init__(self, routes: Dict[Tuple[str, str], Any] = None):
        self.routes = dict(routes or {})
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": "Not found"})
        if callable(route):
            return route(request)
        status, body = route
        return httpx.Response(status, json=body)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def bodies(self, method: str, path: str) -> List[Any]:
        return [json.loads(r.content or b"null") for r in self.requests
                if r.method == method and r.url.path == path]


@pytest.fixture
def teacher_snapshot() -> UIContextSnapshot:
    return UIContextSnapshot.model_validate({
        "route": "/teach/base-classes/" + BASE_CLASS_ID,
        "components": [
            {
                "id": "studio",
                "type": "base-class-studio-page",
                "role": "page",
                "content": {"baseClassId": BASE_CLASS_ID, "baseClassName": "Biology 101", "totalPaths": 0},
            },
            {
                "id": "tree",
                "type": "navigation-tree",
                "role": "navigation",
                "content": {"baseClassName": "Biology 101", "paths": []},
            },
        ],
    })


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def make_ctx():
    def _make(backend: FakeBackend, snapshot: UIContextSnapshot = None, gateway=None, cookie="sb-token=abc"):
        http = backend.client()
        return ToolContext(
            backend=BackendClient(http, "https://app.example.com", cookie=cookie),
            snapshot=snapshot or UIContextSnapshot(),
            gateway=gateway,
        )
    return _make
