"""遊戲自動化模組（登入、導航、分數重播、Run 迴圈）"""
from .state import RunPhase, RunState, LogBuffer, LogEntry, InvalidTransition
from .game_runner import GameRunner

__all__ = [
    "RunPhase",
    "RunState",
    "LogBuffer",
    "LogEntry",
    "InvalidTransition",
    "GameRunner",
]
