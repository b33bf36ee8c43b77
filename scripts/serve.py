#!/usr/bin/env python
"""Run the ChatRAG API with Hypercorn.

Usage:
    python scripts/serve.py                 # Serve on HOST:PORT from config
    python scripts/serve.py --port 8080     # Override the port
"""
import argparse
import asyncio
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from hypercorn.asyncio import serve
from hypercorn.config import Config

from chatrag import config
from chatrag.api import create_app
from chatrag.logging_config import configure_logging


def main():
    parser = argparse.ArgumentParser(description="Run the ChatRAG API server")
    parser.add_argument("--host", default=config.HOST, help=f"Bind host (default: {config.HOST})")
    parser.add_argument("--port", type=int, default=config.PORT, help=f"Bind port (default: {config.PORT})")
    parser.add_argument("--log-level", default=None, help=f"Log level (default: {config.LOG_LEVEL})")
    args = parser.parse_args()

    configure_logging(args.log_level)

    hypercorn_config = Config()
    hypercorn_config.bind = [f"{args.host}:{args.port}"]
    hypercorn_config.accesslog = "-"

    asyncio.run(serve(create_app(), hypercorn_config))


if __name__ == "__main__":
    main()
