"""Convert canonical tool definitions to provider function-calling schemas.

Native tools are sent in strict mode: every object level closes with
``additionalProperties: false`` and lists all of its properties as required.
MCP tools come from third-party servers whose optional parameters must stay
optional, so their ``required`` arrays are left alone and strict mode is off.
"""

from __future__ import annotations

import copy
import re
from typing import Any, Dict, List, Optional, Tuple, Union

from agent_relay.config.constants import (
    MCP_HYPHEN_ENCODING,
    MCP_TOOL_PREFIX,
    MCP_TOOL_SEPARATOR,
)
from agent_relay.domain import ConversionError, ToolDefinition

# Gemini rejects function names longer than this.
_MAX_TOOL_NAME_LENGTH = 64

_COMBINATOR_KEYS = ("anyOf", "oneOf", "allOf")
_DEFINITION_KEYS = ("$defs", "definitions")


# ---------------------------------------------------------------------------
# Schema rewriting
# ---------------------------------------------------------------------------

def _is_object_schema(schema: Dict[str, Any]) -> bool:
    schema_type = schema.get("type")
    if isinstance(schema_type, list):
        return "object" in schema_type or "properties" in schema
    return schema_type == "object" or "properties" in schema


def _close_schema(schema: Any, *, require_all: bool, path: str) -> None:
    """Recursively close object schemas in place. ``schema`` is a private copy."""
    if not isinstance(schema, dict):
        raise ConversionError(f"Schema at {path} must be an object, got {type(schema).__name__}")

    if _is_object_schema(schema):
        properties = schema.get("properties", {})
        if not isinstance(properties, dict):
            raise ConversionError(f"'properties' at {path} must be an object")
        schema["additionalProperties"] = False
        if require_all:
            schema["required"] = list(properties)
        for name, prop in properties.items():
            _close_schema(prop, require_all=require_all, path=f"{path}.properties.{name}")

    items = schema.get("items")
    if isinstance(items, dict):
        _close_schema(items, require_all=require_all, path=f"{path}.items")
    elif isinstance(items, list):
        for i, item in enumerate(items):
            _close_schema(item, require_all=require_all, path=f"{path}.items[{i}]")

    for key in _COMBINATOR_KEYS:
        variants = schema.get(key)
        if variants is None:
            continue
        if not isinstance(variants, list):
            raise ConversionError(f"'{key}' at {path} must be an array")
        for i, variant in enumerate(variants):
            _close_schema(variant, require_all=require_all, path=f"{path}.{key}[{i}]")

    for key in _DEFINITION_KEYS:
        definitions = schema.get(key)
        if isinstance(definitions, dict):
            for name, definition in definitions.items():
                _close_schema(definition, require_all=require_all, path=f"{path}.{key}.{name}")


def convert_schema(schema: Optional[Dict[str, Any]], *, is_mcp: bool) -> Dict[str, Any]:
    """Return a closed copy of ``schema``; the input is never mutated."""
    if schema is None:
        schema = {"type": "object", "properties": {}}
    if not isinstance(schema, dict):
        raise ConversionError(f"Tool schema must be an object, got {type(schema).__name__}")
    converted = copy.deepcopy(schema)
    converted.setdefault("type", "object")
    converted.setdefault("properties", {})
    _close_schema(converted, require_all=not is_mcp, path="$")
    return converted


def convert_tool(tool: ToolDefinition, format: str = "chat") -> Dict[str, Any]:
    """Convert one tool. ``format`` is ``chat`` ({type, function}) or ``responses`` (flat)."""
    if not tool.name:
        raise ConversionError("Tool definition has an empty name")
    parameters = convert_schema(tool.schema, is_mcp=tool.is_mcp)
    strict = not tool.is_mcp
    if format == "responses":
        return {
            "type": "function",
            "name": tool.name,
            "description": tool.description,
            "parameters": parameters,
            "strict": strict,
        }
    if format == "chat":
        return {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": parameters,
                "strict": strict,
            },
        }
    raise ConversionError(f"Unknown tool format {format!r} (expected 'chat' or 'responses')")


def convert_tools(tools: Optional[List[ToolDefinition]], format: str = "chat") -> List[Dict[str, Any]]:
    """Convert ``tools`` in order. ``None`` or an empty list gives an empty list."""
    return [convert_tool(tool, format) for tool in tools or []]


# ---------------------------------------------------------------------------
# Tool choice
# ---------------------------------------------------------------------------

def map_tool_choice(choice: Any) -> Union[str, Dict[str, str], None]:
    """Map an OpenAI-style ``tool_choice`` to the provider-neutral form.

    Strings map to ``auto``/``none``/``required`` (anything else is ``auto``);
    a named function choice becomes ``{"type": "tool", "toolName": name}``.
    """
    if not choice:
        return None
    if isinstance(choice, str):
        return choice if choice in ("auto", "none", "required") else "auto"
    if isinstance(choice, dict) and choice.get("type") == "function":
        name = (choice.get("function") or {}).get("name")
        if name:
            return {"type": "tool", "toolName": name}
    return None


# ---------------------------------------------------------------------------
# MCP tool names
# ---------------------------------------------------------------------------

def sanitize_mcp_name(name: str) -> str:
    """Make a server or tool name safe for function names; hyphens become ``___``."""
    if not name:
        return "_"
    sanitized = re.sub(r"\s+", "_", name)
    sanitized = re.sub(r"[^a-zA-Z0-9_\-]", "", sanitized)
    sanitized = re.sub(r"--+", "-", sanitized)
    sanitized = sanitized.replace("-", MCP_HYPHEN_ENCODING)
    if sanitized and not re.match(r"[a-zA-Z_]", sanitized):
        sanitized = "_" + sanitized
    return sanitized or "_unnamed"


def build_mcp_tool_name(server_name: str, tool_name: str) -> str:
    """``mcp--<server>--<tool>``, capped at 64 characters."""
    full_name = MCP_TOOL_SEPARATOR.join(
        (MCP_TOOL_PREFIX, sanitize_mcp_name(server_name), sanitize_mcp_name(tool_name))
    )
    return full_name[:_MAX_TOOL_NAME_LENGTH]


def normalize_mcp_tool_name(name: str) -> str:
    """Undo a model's ``--`` to ``__`` rewrite: ``mcp__a__b`` becomes ``mcp--a--b``.

    Encoded hyphens (``___``) are preserved. Other names are returned unchanged.
    """
    if not name.startswith(MCP_TOOL_PREFIX + "__"):
        return name
    placeholder = "\x00"
    normalized = name.replace(MCP_HYPHEN_ENCODING, placeholder)
    normalized = normalized.replace("__", MCP_TOOL_SEPARATOR)
    return normalized.replace(placeholder, MCP_HYPHEN_ENCODING)


def parse_mcp_tool_name(name: str) -> Optional[Tuple[str, str]]:
    """Split ``mcp--server--tool`` into decoded ``(server, tool)``; ``None`` if not an MCP name."""
    prefix = MCP_TOOL_PREFIX + MCP_TOOL_SEPARATOR
    if not name.startswith(prefix):
        return None
    server, sep, tool = name[len(prefix):].partition(MCP_TOOL_SEPARATOR)
    if not sep or not server or not tool:
        return None
    return server.replace(MCP_HYPHEN_ENCODING, "-"), tool.replace(MCP_HYPHEN_ENCODING, "-")


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------

def tool_definition_from_openai(tool: Dict[str, Any]) -> ToolDefinition:
    """Build a ``ToolDefinition`` from an OpenAI ``{type: function, function: {...}}`` dict.

    The flat Responses layout (``name``/``parameters`` at the top level) is accepted too.
    """
    if not isinstance(tool, dict):
        raise ConversionError(f"Tool must be an object, got {type(tool).__name__}")
    if tool.get("type", "function") != "function":
        raise ConversionError(f"Unsupported tool type {tool.get('type')!r}")
    spec = tool.get("function", tool)
    name = spec.get("name")
    if not name:
        raise ConversionError("Tool definition is missing 'name'")
    parameters = spec.get("parameters")
    if parameters is None:
        parameters = {"type": "object", "properties": {}}
    return ToolDefinition(name=name, description=spec.get("description") or "", schema=parameters)


def tool_definition_from_mcp(server_name: str, tool: Any) -> ToolDefinition:
    """Wrap an MCP ``Tool`` object (``.name``, ``.description``, ``.inputSchema``).

    The resulting name is ``mcp--<server>--<tool>``, so ``is_mcp`` is always true.
    """
    schema = getattr(tool, "inputSchema", None)
    if schema is None:
        schema = {"type": "object", "properties": {}, "required": []}
    return ToolDefinition(
        name=build_mcp_tool_name(server_name, tool.name),
        description=getattr(tool, "description", None) or "",
        schema=schema,
    )
