"""dogwalk web application package.

Importing the package loads a local ``.env`` file into the environment via
python-dotenv. ``uvicorn dogwalk.webapp:app`` builds the application from that
environment on first access of ``app``; no database is opened at import.
"""
from __future__ import annotations

from typing import Any, List, Optional

from fastapi import FastAPI

from .application import ERROR_STATUS, create_app
from .config import WebConfig
from .persistence import SqlRecordStore, make_engine

_APP: Optional[FastAPI] = None

__all__: List[str] = ["ERROR_STATUS", "SqlRecordStore", "WebConfig", "app", "create_app", "make_engine"]


def __getattr__(name: str) -> Any:
    global _APP
    if name == "app":
        if _APP is None:
            _APP = create_app()
        return _APP
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> List[str]:
    return sorted(set(globals()) | set(__all__))
