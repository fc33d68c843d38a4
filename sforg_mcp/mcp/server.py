"""MCP server definition and tool registration"""
import inspect
import json
import logging
from typing import Any, Callable, Dict

import pydantic
from mcp.server.fastmcp import FastMCP

from sforg_mcp import config

logger = logging.getLogger(__name__)

SERVER_NAME = "salesforce-cli"

BACKENDS = (config.REST, config.CLI)

# backend -> tool name -> {"name", "description", "schema", "function"}
tool_registry: Dict[str, Dict[str, Dict[str, Any]]] = {backend: {} for backend in BACKENDS}


def parse_docstring(func):
    """A simple parser for a standard Python docstring."""
    docstring = inspect.getdoc(func)
    if not docstring:
        return "No description available.", {}

    lines = docstring.strip().split('\n')
    description = lines[0].strip()
    arg_descriptions = {}
    args_section = False

    for line in lines[1:]:
        line = line.strip()
        if line.lower() in ('args:', 'parameters:'):
            args_section = True
            continue
        if args_section and not line:
            break
        if args_section and ':' in line:
            arg_name, arg_desc = line.split(':', 1)
            arg_descriptions[arg_name.strip()] = arg_desc.strip()

    return description, arg_descriptions


def create_model_from_func(func, arg_descriptions):
    """Creates a Pydantic model from a function's signature and descriptions."""
    fields = {}
    for param in inspect.signature(func).parameters.values():
        field_info = {
            "description": arg_descriptions.get(param.name, ""),
        }
        if param.default is not inspect.Parameter.empty:
            field_info["default"] = param.default
        fields[param.name] = (param.annotation, pydantic.Field(**field_info))

    return pydantic.create_model(f"{func.__name__}Schema", **fields)


def add_tool_to_registry(func: Callable, backend: str) -> None:
    """Parses a function, generates its schema, and adds it to the backend's registry."""
    if backend not in tool_registry:
        raise ValueError(f"Unknown backend '{backend}'")
    tool_name = func.__name__
    description, arg_descriptions = parse_docstring(func)
    tool_registry[backend][tool_name] = {
        "name": tool_name,
        "description": description,
        "schema": create_model_from_func(func, arg_descriptions),
        "function": func,
    }
    logger.debug("Registered %s tool: '%s'", backend, tool_name)


def register_tool(*backends: str):
    """Decorator registering a function as a tool of the given backend(s)."""
    def decorator(func):
        for backend in backends or BACKENDS:
            add_tool_to_registry(func, backend)
        return func
    return decorator


def to_json(data: Any, indent: int = 2) -> str:
    return json.dumps(data, indent=indent, ensure_ascii=False, default=str)


def load_tools() -> None:
    # Importing the tools package runs every @register_tool decorator.
    from sforg_mcp.mcp import tools  # noqa: F401


def tool_catalog(backend: str) -> list:
    """Name, summary and JSON schema of each tool a backend exposes."""
    load_tools()
    return [
        {
            "name": entry["name"],
            "description": entry["description"],
            "inputSchema": entry["schema"].model_json_schema(),
        }
        for entry in tool_registry[backend].values()
    ]


def create_server(backend: str = None) -> FastMCP:
    """Build a FastMCP server exposing the tools of one backend."""
    backend = (backend or config.BACKEND).lower()
    if backend not in tool_registry:
        raise ValueError(f"Unknown backend '{backend}', expected one of: {', '.join(BACKENDS)}")

    load_tools()
    server = FastMCP(name=SERVER_NAME)
    for entry in tool_registry[backend].values():
        server.add_tool(entry["function"], name=entry["name"])
    logger.info("✅ %s backend: %d tools registered", backend, len(tool_registry[backend]))
    return server


__all__ = ['create_server', 'register_tool', 'tool_registry', 'tool_catalog', 'to_json']
