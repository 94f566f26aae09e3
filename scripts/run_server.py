#!/usr/bin/env python3
"""
Run the control-plane API with uvicorn.
The sleep scheduler starts with the app unless SCHEDULER_ENABLED=false.
"""

import argparse

import uvicorn

from pacegate.core.config import DEBUG, validate_config
from pacegate.util.logging import logger


def main():
    parser = argparse.ArgumentParser(description="pacegate control-plane API")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=7070, help="Port (default: 7070)")
    parser.add_argument("--reload", action="store_true", help="Reload on code changes (development)")
    args = parser.parse_args()

    for issue in validate_config():
        logger.warning(f"Config issue: {issue}")

    uvicorn.run(
        "pacegate.api.main:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="debug" if DEBUG else "info"
    )


if __name__ == "__main__":
    main()
