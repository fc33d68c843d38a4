# sforg_mcp/main.py
import argparse
import json
import logging
import sys

from sforg_mcp import config
from sforg_mcp.mcp.server import BACKENDS, create_server, tool_catalog

logger = logging.getLogger("sforg_mcp")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Salesforce org tools over the Model Context Protocol.")
    parser.add_argument("--mcp-stdio", action="store_true", help="Serve MCP over stdin/stdout")
    parser.add_argument("--backend", choices=BACKENDS, default=config.BACKEND,
                        help="rest: call the org's REST API directly; cli: shell out to the sf CLI")
    parser.add_argument("--list-tools", action="store_true", help="Print the backend's tool catalog as JSON and exit")
    parser.add_argument("--log-level", default=config.LOG_LEVEL, help="DEBUG, INFO, WARNING, ERROR")
    args = parser.parse_args(argv)

    # stdout carries the protocol; logs go to stderr
    logging.basicConfig(
        stream=sys.stderr,
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.list_tools:
        print(json.dumps(tool_catalog(args.backend), indent=2))
        return 0

    if not args.mcp_stdio:
        parser.print_help(sys.stderr)
        return 2

    server = create_server(args.backend)
    logger.info("MCP starting (stdio, %s backend)", args.backend)
    server.run(transport="stdio")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
