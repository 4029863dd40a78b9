"""Run 狀態機、計數器與日誌環形緩衝（線程安全）"""
import time
import logging
import threading
from collections import deque
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Deque, Dict, List, Optional, Any

from core.utils import js_round, format_uptime

MAX_LOG_ENTRIES = 100

LOG_TYPES = ("info", "success", "warning", "error", "game")

# 日誌類型對應的 logging 等級
_LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "game": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class RunPhase(Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPING = "stopping"


# 允許的狀態轉移
_TRANSITIONS = {
    RunPhase.IDLE: {RunPhase.RUNNING},
    RunPhase.RUNNING: {RunPhase.PAUSED, RunPhase.STOPPING, RunPhase.IDLE},
    RunPhase.PAUSED: {RunPhase.RUNNING, RunPhase.STOPPING, RunPhase.IDLE},
    RunPhase.STOPPING: {RunPhase.IDLE},
}


class InvalidTransition(Exception):
    """不允許的狀態轉移，例如對未暫停的 Run 執行 resume"""

    def __init__(self, current: RunPhase, target: RunPhase):
        self.current = current
        self.target = target
        super().__init__(f"cannot go from {current.value} to {target.value}")


@dataclass
class LogEntry:
    timestamp: str
    message: str
    type: str = "info"

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


class LogBuffer:
    """只保留最近 MAX_LOG_ENTRIES 筆的日誌，依時間先後排列；同時寫入 logging"""

    def __init__(self, maxlen: int = MAX_LOG_ENTRIES):
        self._entries: Deque[LogEntry] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def add(self, message: str, type: str = "info") -> LogEntry:
        if type not in LOG_TYPES:
            type = "info"
        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            message=message,
            type=type,
        )
        with self._lock:
            self._entries.append(entry)
        logging.log(_LEVELS[type], message)
        return entry

    def recent(self, count: int = 50) -> List[LogEntry]:
        """最近 count 筆，舊的在前"""
        if count <= 0:
            return []
        with self._lock:
            entries = list(self._entries)
        return entries[-count:]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def success_rate(successful: int, played: int) -> int:
    """成功率（百分比整數）；尚未玩任何一局時為 0"""
    if played <= 0:
        return 0
    return js_round(successful / played * 100)


class RunState:
    """
    一次 Run 的計數與狀態

    只有 GameRunner（計數）與 RunController（狀態轉移）會修改；
    API 透過 snapshot() 取得一致的唯讀副本
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.phase = RunPhase.IDLE
        self.games_played = 0
        self.games_successful = 0
        self.games_failed = 0
        self.current_game = 0
        self.total_games = 0
        self.start_time: Optional[float] = None
        self.last_game_score: Optional[int] = None

    # ---- 狀態機 ----

    def transition(self, target: RunPhase, allowed_from=None) -> RunPhase:
        """
        轉移到 target，回傳原狀態
        allowed_from 可進一步限制來源狀態（例如 resume 只能從 PAUSED）
        """
        with self._lock:
            current = self.phase
            if target not in _TRANSITIONS[current] or (
                allowed_from is not None and current not in allowed_from
            ):
                raise InvalidTransition(current, target)
            self.phase = target
            return current

    def begin(self, total_games: int):
        self.transition(RunPhase.RUNNING, allowed_from={RunPhase.IDLE})
        with self._lock:
            self.total_games = total_games
            self.start_time = time.time()

    def finish(self):
        """Run 結束（完成、中止或停止）回到 IDLE；已是 IDLE 則忽略"""
        with self._lock:
            self.phase = RunPhase.IDLE

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self.phase is not RunPhase.IDLE

    @property
    def is_paused(self) -> bool:
        with self._lock:
            return self.phase is RunPhase.PAUSED

    @property
    def stop_requested(self) -> bool:
        with self._lock:
            return self.phase is RunPhase.STOPPING

    # ---- 計數 ----

    def set_current_game(self, game_num: int):
        with self._lock:
            self.current_game = game_num

    def set_last_score(self, score: int):
        with self._lock:
            self.last_game_score = score

    def record_result(self, success: bool):
        with self._lock:
            if success:
                self.games_successful += 1
            else:
                self.games_failed += 1
            self.games_played += 1

    # ---- 讀取 ----

    def uptime_ms(self) -> int:
        with self._lock:
            start = self.start_time
        if start is None:
            return 0
        return int((time.time() - start) * 1000)

    def snapshot(self) -> Dict[str, Any]:
        """API 用的一致快照（camelCase）"""
        with self._lock:
            phase = self.phase
            data = {
                "gamesPlayed": self.games_played,
                "gamesSuccessful": self.games_successful,
                "gamesFailed": self.games_failed,
                "currentGame": self.current_game,
                "totalGames": self.total_games,
                "startTime": (
                    datetime.fromtimestamp(self.start_time, timezone.utc).isoformat()
                    if self.start_time is not None else None
                ),
                "lastGameScore": self.last_game_score,
            }
        uptime = self.uptime_ms()
        data.update({
            "state": phase.value,
            "isRunning": phase is not RunPhase.IDLE,
            "isPaused": phase is RunPhase.PAUSED,
            "uptime": uptime,
            "uptimeFormatted": format_uptime(uptime),
            "successRate": success_rate(data["gamesSuccessful"], data["gamesPlayed"]),
            "progress": (
                js_round(data["currentGame"] / data["totalGames"] * 100)
                if data["totalGames"] > 0 else 0
            ),
        })
        return data
