"""
main.py: Server launcher and entry point.

Run this file to start the parking ledger API:

    python main.py

This file does NOT contain application logic. See app.py for the FastAPI
application, service wiring, and startup sequence.

Direct uvicorn usage:
    uvicorn app:app --reload
"""

from __future__ import annotations

import os

import uvicorn


HOST = os.getenv("PARKING_HOST", "127.0.0.1")
PORT = int(os.getenv("PARKING_PORT", "8000"))


def main() -> None:
    """Start the parking ledger API server."""
    print("=" * 60)
    print("  Parking Spot Assignment Ledger")
    print("=" * 60)
    print(f"  Server   : http://{HOST}:{PORT}")
    print(f"  API docs : http://{HOST}:{PORT}/docs")
    print("=" * 60)
    print("  Press CTRL+C to stop\n")

    # Blocks until CTRL+C. A single worker keeps one writer per database file.
    uvicorn.run(
        "app:app",
        host=HOST,
        port=PORT,
        reload=False,
        log_level="info",
    )


if __name__ == "__main__":
    main()
