"""HTTP 控制介面"""
from .controller import ControlError, RunController
from .server import create_app

__all__ = [
    "ControlError",
    "RunController",
    "create_app",
]
