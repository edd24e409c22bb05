from __future__ import annotations

from .auth import require_api_key
from .planner import get_planner

__all__ = ["get_planner", "require_api_key"]
