"""Command-line entry point: serve the edge layer with uvicorn."""

import argparse
from typing import Optional

import uvicorn

from edge_shield import __version__
from edge_shield.common.config import ShieldSettings
from edge_shield.web.app import create_app


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        prog="edge-shield",
        description="Serve the Edge Shield interception layer",
    )
    parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    parser.add_argument("--port", type=int, default=8000, help="Bind port")
    parser.add_argument(
        "--upstream",
        default=None,
        help="Origin server URL (overrides UPSTREAM_URL)",
    )
    parser.add_argument("--version", action="version", version=__version__)
    args = parser.parse_args(argv)

    overrides = {}
    if args.upstream:
        overrides["upstream_url"] = args.upstream
    settings = ShieldSettings(**overrides)

    # Logging is configured by the app lifespan
    uvicorn.run(create_app(settings), host=args.host, port=args.port, log_config=None)


if __name__ == "__main__":
    main()
