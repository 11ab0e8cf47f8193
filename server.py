"""
server.py

Entry point for the azurerm plugin server.

Usage:
    python server.py                    # default: 0.0.0.0:8000, auto-reload off
    python server.py --port 8080        # custom port
    python server.py --reload           # enable auto-reload for development
    python server.py --log-level debug  # include HTTP wire dumps

Or directly via uvicorn:
    uvicorn api.app:app --reload --port 8000

Credentials for POST /configure default to the ARM_* variables; a .env file
in the working directory is loaded before the app is imported.
"""

import logging

import uvicorn
from dotenv import load_dotenv

if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Start the azurerm plugin server.")
    parser.add_argument("--host",      default="0.0.0.0",  help="Bind host (default: 0.0.0.0)")
    parser.add_argument("--port",      default=8000, type=int, help="Bind port (default: 8000)")
    parser.add_argument("--reload",    action="store_true",   help="Enable auto-reload (dev mode)")
    parser.add_argument("--log-level", default="info", choices=["debug", "info", "warning"],
                        help="Level for the azurerm loggers (default: info)")
    args = parser.parse_args()

    load_dotenv()
    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger("azurerm").setLevel(args.log_level.upper())

    print(f"\n  🚀  azurerm plugin server starting on http://{args.host}:{args.port}")
    print(f"  📖  Interactive docs → http://localhost:{args.port}/docs\n")

    uvicorn.run(
        "api.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
    )
