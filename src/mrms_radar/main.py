"""ASGI entrypoint for the MRMS radar API.

Usage:
    uvicorn mrms_radar.main:app
    python -m mrms_radar.main
"""
from __future__ import annotations

import logging

import uvicorn

from . import app, create_app

logging.basicConfig(level=logging.INFO, format="[%(asctime)s] %(levelname)s %(name)s: %(message)s")


if __name__ == "__main__":
    uvicorn.run("mrms_radar.main:app", host="127.0.0.1", port=8000)


__all__ = ["app", "create_app"]
