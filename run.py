#!/usr/bin/env python3
"""Startup script for the sandbox API."""
import os
import uvicorn

from shipsync.config import settings

if __name__ == "__main__":
    port = int(os.environ.get("PORT", settings.port))
    print(f"Starting ShipSync API on port {port}")
    uvicorn.run(
        "shipsync.main:app",
        host=settings.host,
        port=port,
        log_level="info"
    )
