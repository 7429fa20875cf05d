"""
License Finder - Main Entry Point
=================================
Run this file to start the FastAPI server.

Usage:
    python main.py                    # Start server on port 8000
    python main.py --port 8080        # Start server on custom port
    python main.py --reload           # Start with auto-reload (dev mode)

Environment:
    APP_PASSWORD, AUTH_SECRET         # Required for login
    LLM_PROVIDER, OPENAI_API_KEY ...  # Falls back to the mock provider without a key

API Documentation:
    http://localhost:8000/docs        # Swagger UI
    http://localhost:8000/redoc       # ReDoc
"""

import argparse
import uvicorn
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from license_finder import __version__
from license_finder.logging_config import configure_logging


def main():
    parser = argparse.ArgumentParser(description="License Finder API Server")
    parser.add_argument(
        "--host",
        type=str,
        default="0.0.0.0",
        help="Host to bind the server to (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to run the server on (default: 8000)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Log level (default: LOG_LEVEL or INFO)",
    )

    args = parser.parse_args()
    configure_logging(args.log_level)

    print(f"""
    ╔══════════════════════════════════════════════════════════════╗
    ║                      LICENSE FINDER                          ║
    ║                      Version {__version__}                           ║
    ╠══════════════════════════════════════════════════════════════╣
    ║  Server starting on http://{args.host}:{args.port}
    ║  API Docs: http://localhost:{args.port}/docs
    ║  Health:   http://localhost:{args.port}/api/health
    ╚══════════════════════════════════════════════════════════════╝
    """)

    # Single worker: records live in process memory
    uvicorn.run(
        "license_finder.api.endpoints:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
