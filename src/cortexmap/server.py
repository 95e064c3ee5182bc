"""MCP server exposing the live graph and its commit history."""

import asyncio
import json
import logging
import sys
import traceback

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from .config import Settings, load_settings
from .engine import CortexEngine
from .errors import CortexMapError

logger = logging.getLogger("cortexmap")

_NODE_SCHEMA = {
    "type": "object",
    "properties": {
        "id": {"type": "string"},
        "text": {"type": "string"},
        "role": {
            "type": "string",
            "enum": ["plan", "execution", "memory", "evidence", "reflection"],
        },
        "metadata": {"description": "Optional structured payload"},
        "parent_id": {"type": ["string", "null"]},
    },
    "required": ["id", "text", "role"],
}

_EDGE_SCHEMA = {
    "type": "object",
    "properties": {
        "id": {"type": "string"},
        "source": {"type": "string"},
        "target": {"type": "string"},
        "edge_type": {"type": "string"},
        "metadata": {"description": "Optional structured payload"},
    },
    "required": ["id", "source", "target", "edge_type"],
}

_COMMIT_ID = {
    "type": "object",
    "properties": {
        "commit_id": {"type": "string", "description": "Commit identifier"},
    },
    "required": ["commit_id"],
}

TOOLS = [
    Tool(
        name="read_graph",
        description="Read every live node and edge.",
        inputSchema={"type": "object", "properties": {}},
    ),
    Tool(
        name="save_graph",
        description=(
            "Replace the whole live graph with the given nodes and edges. "
            "All-or-nothing: on any error the previous graph is kept."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "nodes": {"type": "array", "items": _NODE_SCHEMA},
                "edges": {"type": "array", "items": _EDGE_SCHEMA},
            },
            "required": ["nodes", "edges"],
        },
    ),
    Tool(
        name="list_commits",
        description="List commits, newest first.",
        inputSchema={
            "type": "object",
            "properties": {
                "limit": {"type": "integer", "description": "Max commits to return"},
            },
        },
    ),
    Tool(
        name="create_commit",
        description="Snapshot the live graph and record it as a new commit.",
        inputSchema={
            "type": "object",
            "properties": {
                "agent_id": {"type": "string", "description": "Who is committing"},
                "message": {"type": "string", "description": "What changed"},
            },
            "required": ["message"],
        },
    ),
    Tool(
        name="restore_commit",
        description=(
            "Replace the live graph with the state captured by a commit. "
            "Does not record a new commit."
        ),
        inputSchema=_COMMIT_ID,
    ),
    Tool(
        name="get_commit_snapshot",
        description="Return the graph captured by a commit without changing the live graph.",
        inputSchema=_COMMIT_ID,
    ),
    Tool(
        name="status",
        description="Live node/edge counts and the latest commit.",
        inputSchema={"type": "object", "properties": {}},
    ),
]


def _text(result) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(result, indent=2, default=str))]


def dispatch(engine: CortexEngine, name: str, arguments: dict, default_agent: str = "user") -> list[TextContent]:
    """Run one tool call against the engine.

    Failures are reported as "Error [<code>]: ..." so callers can tell
    storage problems from missing or invalid input.
    """
    logger.info(f"Tool call: {name}")
    logger.debug(f"Arguments: {arguments}")
    try:
        if name == "read_graph":
            return _text(engine.read_graph())

        elif name == "save_graph":
            return _text(engine.save_graph(arguments))

        elif name == "list_commits":
            return _text(engine.list_commits(limit=arguments.get("limit")))

        elif name == "create_commit":
            return _text(engine.create_commit(
                agent_id=arguments.get("agent_id") or default_agent,
                message=arguments["message"],
            ))

        elif name == "restore_commit":
            return _text(engine.restore_commit(arguments["commit_id"]))

        elif name == "get_commit_snapshot":
            return _text(engine.commit_snapshot(arguments["commit_id"]))

        elif name == "status":
            return _text(engine.status())

        else:
            return [TextContent(type="text", text=f"Unknown tool: {name}")]

    except CortexMapError as e:
        logger.warning(f"Tool {name} failed ({e.code}): {e}")
        return [TextContent(type="text", text=f"Error [{e.code}]: {e}")]
    except KeyError as e:
        return [TextContent(type="text", text=f"Error [validation_failure]: missing argument {e}")]
    except Exception as e:
        logger.error(f"Tool {name} failed: {e}")
        logger.error(traceback.format_exc())
        return [TextContent(type="text", text=f"Error: {e}")]


def create_server(engine: CortexEngine, default_agent: str = "user") -> Server:
    """Build an MCP server bound to the given engine."""
    server = Server("cortexmap")

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        return TOOLS

    @server.call_tool()
    async def call_tool(name: str, arguments: dict) -> list[TextContent]:
        return dispatch(engine, name, arguments or {}, default_agent=default_agent)

    return server


def _setup_logging(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(settings.log_file),
            logging.StreamHandler(sys.stderr),
        ],
    )


def main():
    """Entry point for the MCP server."""
    settings = load_settings()
    _setup_logging(settings)

    engine = CortexEngine.from_settings(settings)
    status = engine.status()
    logger.info(f"CortexMap MCP Server starting (data_dir={settings.data_dir})")
    logger.info(
        f"Loaded {status['node_count']} nodes, {status['edge_count']} edges, "
        f"{status['commit_count']} commits"
    )
    server = create_server(engine, default_agent=settings.agent_id)
    try:
        asyncio.run(_run_server(server))
    except Exception as e:
        logger.error(f"Server crashed: {e}")
        logger.error(traceback.format_exc())
        raise
    finally:
        engine.close()


async def _run_server(server: Server):
    """Run the MCP server over stdio."""
    async with stdio_server() as (read, write):
        await server.run(read, write, server.create_initialization_options())


if __name__ == "__main__":
    main()
