"""FastMCP server for the session bridge and the registry of its tools.

Every tool is a plain (sync or async) function returning a JSON string. Its
summary line and ``Args:`` section become the MCP description and the
per-argument schema text; ``writes=True`` flags tools that deploy to the org
so runners can keep them out of read-only passes.
"""
import inspect
import logging
import re

import pydantic
from mcp.server.fastmcp import FastMCP

logger = logging.getLogger(__name__)

SECTION_HEADERS = ("args:", "parameters:", "returns:", "raises:", "examples:", "notes:")
ARG_LINE = re.compile(r"^(\w+)\s*(?:\([^)]*\))?\s*:\s*(.*)$")


def parse_docstring(func):
    """Summary line plus ``{arg: description}`` from a Google-style ``Args:`` block.

    Indented lines under an argument continue its description.
    """
    docstring = inspect.getdoc(func)
    if not docstring:
        return "No description available.", {}

    lines = docstring.strip().split('\n')
    description = lines[0].strip()
    arg_descriptions = {}
    args_section = False
    arg_indent = None
    current = None

    for line in lines[1:]:
        stripped = line.strip()
        if not stripped:
            continue
        if stripped.lower() in SECTION_HEADERS:
            args_section = stripped.lower() in ('args:', 'parameters:')
            arg_indent = None
            current = None
            continue
        if not args_section:
            continue

        indent = len(line) - len(line.lstrip())
        if arg_indent is None:
            arg_indent = indent
        match = ARG_LINE.match(stripped)
        if indent == arg_indent and match:
            current = match.group(1)
            arg_descriptions[current] = match.group(2)
        elif current and indent > arg_indent:
            arg_descriptions[current] = f"{arg_descriptions[current]} {stripped}".strip()

    return description, arg_descriptions


def create_model_from_func(func, arg_descriptions):
    """Pydantic model of a tool's arguments, used as its input schema."""
    fields = {}
    for param in inspect.signature(func).parameters.values():
        field_info = {
            "description": arg_descriptions.get(param.name, ""),
        }
        if param.default is not inspect.Parameter.empty:
            field_info["default"] = param.default
        fields[param.name] = (param.annotation, pydantic.Field(**field_info))

    return pydantic.create_model(f"{func.__name__}Schema", **fields)


mcp_server = FastMCP(name="salesforce-session-bridge")

tool_registry = {}


def add_tool_to_registry(func, writes: bool = False):
    """Record the tool's schema and flags, then expose it on ``mcp_server``."""
    tool_name = func.__name__

    try:
        description, arg_descriptions = parse_docstring(func)
        schema = create_model_from_func(func, arg_descriptions)

        tool_registry[tool_name] = {
            "name": tool_name,
            "description": description,
            "schema": schema,
            "function": func,
            "writes": writes,
            "is_async": inspect.iscoroutinefunction(func),
        }

        mcp_server.tool(description=description)(func)
        logger.info("✅ Registered tool: '%s'%s", tool_name, " (writes)" if writes else "")

    except Exception as e:
        logger.error("❌ Failed to register tool '%s': %s", tool_name, e)


def register_tool(func=None, *, writes: bool = False):
    """Register a function as a tool. ``writes=True`` marks tools that change the org."""
    def decorator(f):
        add_tool_to_registry(f, writes=writes)
        return f

    if func is not None:
        return decorator(func)
    return decorator


__all__ = ['mcp_server', 'register_tool', 'tool_registry']
