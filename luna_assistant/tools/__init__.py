from __future__ import annotations

import importlib
import inspect
import pkgutil
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Type

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from pydantic.errors import PydanticUserError

from luna_assistant.exceptions import ConfigurationError
from luna_assistant.telemetry import log_tool

ToolHandler = Callable[..., Awaitable[Any]]

_JSON_TYPES = {"string", "number", "integer", "boolean", "array", "object", "null"}


class ToolParams(BaseModel):
    """Base for tool argument models: camelCase on the wire, unknown keys rejected."""
    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True, frozen=True)


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    description: str
    params: Type[ToolParams]
    handler: ToolHandler

    @property
    def parameter_schema(self) -> Dict[str, Any]:
        return _clean_schema(self.params.model_json_schema(by_alias=True))

    def to_openai_tool(self) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameter_schema,
            },
        }


# --------------------------------------------------------------------------- #
# 1.  Declarations collected at import time
# --------------------------------------------------------------------------- #
_DECLARED: List[ToolDescriptor] = []


def tool(name: str, *, params: Type[ToolParams], description: str | None = None):
    """
    Declare an async tool handler.

    The handler is called as ``await handler(ctx, params)`` with a validated
    ``params`` instance. It is telemetry-logged and collected for the registry.
    """
    def _wrap(fn: ToolHandler) -> ToolHandler:
        wrapped = log_tool(fn, name)
        _DECLARED.append(ToolDescriptor(
            name=name,
            description=description or inspect.getdoc(fn) or name,
            params=params,
            handler=wrapped,
        ))
        return wrapped
    return _wrap


# --------------------------------------------------------------------------- #
# 2.  Read-only registry built once at startup
# --------------------------------------------------------------------------- #
class ToolRegistry(Mapping[str, ToolDescriptor]):
    """Process-wide, immutable map of tool name -> descriptor."""

    def __init__(self, descriptors: Iterable[ToolDescriptor]):
        table: Dict[str, ToolDescriptor] = {}
        for desc in descriptors:
            if desc.name in table:
                raise ConfigurationError(f"Duplicate tool name registered: {desc.name!r}")
            _check_schema(desc)
            table[desc.name] = desc
        self._tools = MappingProxyType(table)

    def __getitem__(self, name: str) -> ToolDescriptor:
        return self._tools[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._tools)

    def __len__(self) -> int:
        return len(self._tools)

    def list_tools(self, names: Optional[Iterable[str]] = None) -> List[ToolDescriptor]:
        if names is None:
            return list(self._tools.values())
        wanted = set(names)
        return [d for d in self._tools.values() if d.name in wanted]

    def get_handler(self, name: str) -> ToolHandler | None:
        desc = self._tools.get(name)
        return desc.handler if desc else None


def build_registry() -> ToolRegistry:
    """Registry over every tool declared in this package."""
    return ToolRegistry(_DECLARED)


def _check_schema(desc: ToolDescriptor) -> None:
    try:
        schema = desc.parameter_schema
    except PydanticUserError as exc:
        raise ConfigurationError(f"Tool {desc.name!r} has a non-serializable parameter schema: {exc}") from exc
    if schema.get("type") != "object":
        raise ConfigurationError(f"Tool {desc.name!r} parameters must be an object schema")
    bad = sorted(set(_schema_types(schema)) - _JSON_TYPES)
    if bad:
        raise ConfigurationError(f"Tool {desc.name!r} uses non-JSON types: {', '.join(bad)}")


def _schema_types(node: Any) -> Iterator[str]:
    if isinstance(node, dict):
        declared = node.get("type")
        if isinstance(declared, str):
            yield declared
        elif isinstance(declared, list):
            yield from (t for t in declared if isinstance(t, str))
        for value in node.values():
            yield from _schema_types(value)
    elif isinstance(node, list):
        for item in node:
            yield from _schema_types(item)


def _clean_schema(node: Any) -> Any:
    # Drop pydantic's "title" annotations; property names are dict keys, not strings.
    if isinstance(node, dict):
        return {k: _clean_schema(v) for k, v in node.items() if not (k == "title" and isinstance(v, str))}
    if isinstance(node, list):
        return [_clean_schema(v) for v in node]
    return node


# --------------------------------------------------------------------------- #
# 3.  Auto-import every module under tools/ so their decorators run
# --------------------------------------------------------------------------- #
for *_, module_name, is_pkg in pkgutil.iter_modules(__path__):
    if not is_pkg and module_name != "__init__":
        importlib.import_module(f".{module_name}", package=__name__)
