"""
main.py: Server launcher and entry point.

Run this file to start the travel agent's event endpoint:

    python main.py

This file does NOT contain application logic. See app.py for the FastAPI
application and service wiring.

Direct uvicorn usage:
    uvicorn app:app --reload
"""

from __future__ import annotations

import os

import uvicorn


HOST = os.getenv("TAC_HOST", "127.0.0.1")
PORT = int(os.getenv("TAC_PORT", "8000"))


def main() -> None:
    """Start the agent server."""
    print("=" * 60)
    print("  TAC Travel Agent")
    print("=" * 60)
    print(f"  Events  : http://{HOST}:{PORT}/agent")
    print(f"  API docs: http://{HOST}:{PORT}/docs")
    print("=" * 60)
    print("  Press CTRL+C to stop\n")

    # reload would spawn a second engine and drop the running game
    uvicorn.run(
        "app:app",
        host=HOST,
        port=PORT,
        reload=False,
        log_level="info",
    )


if __name__ == "__main__":
    main()
