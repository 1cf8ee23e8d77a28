"""
Main entry point for the client tools server.

Can be called with: python -m chat_client_tools
"""

import argparse
import logging

import uvicorn

from .app import create_app
from .config import Settings


def main():
    """Main entry point for the client tools server."""
    settings = Settings.from_env()

    parser = argparse.ArgumentParser(
        description="Client tools - dispatch agent tool invocations to chat clients"
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind the server to (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to run the server on (default: 8000)",
    )
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        help=f"Logging level (default: {settings.log_level})",
    )
    args = parser.parse_args()

    settings.log_level = args.log_level.upper()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger(__name__).info(
        f"Starting client tools server, agent service at {settings.agent_service_url}"
    )

    uvicorn.run(create_app(settings), host=args.host, port=args.port)


if __name__ == "__main__":
    main()
