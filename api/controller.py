"""
Run 控制層 - RunController

持有目前（或上一次）的 Run：GameRunner、RunState、LogBuffer 與背景執行緒。
HTTP 路由只透過這個物件操作 Run，不直接碰 GameRunner。
同一時間最多一個 Run。
"""
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from config.models import GameConfig, GeneralConfig, RunConfig
from core.browser import BrowserSession
from game.game_runner import GameRunner
from game.state import InvalidTransition, LogBuffer, RunPhase, RunState
from notification.lark import LarkClient

MIN_GAMES = 1
MAX_GAMES = 100
DEFAULT_LOG_COUNT = 50


class ControlError(Exception):
    """API 邊界的拒絕；status 為 HTTP 狀態碼，extra 會併入回應 JSON"""

    def __init__(self, message: str, status: int = 400, **extra: Any):
        super().__init__(message)
        self.message = message
        self.status = status
        self.extra = extra

    def to_dict(self) -> Dict[str, Any]:
        body = {"success": False, "error": self.message}
        body.update(self.extra)
        return body


class RunController:
    """
    同一時間最多持有一個 Run（RunConfig、RunState、LogBuffer 與背景執行緒）

    - start：驗證輸入後在背景執行緒啟動 GameRunner
    - stop / pause / resume：只改 RunState 的狀態，由 GameRunner 在局與局之間觀察
    - status / stats / logs：讀取快照，Run 結束後仍保留上一次的結果
    """

    def __init__(
        self,
        games: Dict[str, GameConfig],
        general: GeneralConfig,
        session_factory: Callable[[GeneralConfig], BrowserSession] = BrowserSession,
        notifier: Optional[LarkClient] = None,
        rng_factory: Callable[[], np.random.Generator] = np.random.default_rng,
    ):
        self.games = games
        self.general = general
        self.session_factory = session_factory
        self.notifier = notifier
        self.rng_factory = rng_factory

        self._lock = threading.Lock()
        self.run_config: Optional[RunConfig] = None
        self.runner: Optional[GameRunner] = None
        self.state: Optional[RunState] = None
        self.log: Optional[LogBuffer] = None
        self.thread: Optional[threading.Thread] = None

    # ---- 查詢 ----

    def list_games(self) -> List[Dict[str, Any]]:
        return [
            {
                "key": key,
                "name": game.name,
                "loginUrl": game.login_url,
                "sequences": len(game.sequences),
            }
            for key, game in self.games.items()
        ]

    @property
    def has_bot(self) -> bool:
        return self.state is not None

    def status(self) -> Dict[str, Any]:
        """精簡狀態；沒有任何 Run 時回傳 hasBot=False"""
        if self.state is None:
            return {"hasBot": False, "isRunning": False, "message": "No active bot"}
        snap = self.state.snapshot()
        return {
            "hasBot": True,
            "isRunning": snap["isRunning"],
            "isPaused": snap["isPaused"],
            "state": snap["state"],
            "currentGame": snap["currentGame"],
            "totalGames": snap["totalGames"],
            "progress": snap["progress"],
        }

    def stats(self) -> Dict[str, Any]:
        if self.state is None:
            return {"hasBot": False, "stats": None}
        stats = self.state.snapshot()
        stats["gameKey"] = self.run_config.game.key
        stats["gameName"] = self.run_config.game.name
        return {"hasBot": True, "stats": stats}

    def logs(self, count: int = DEFAULT_LOG_COUNT) -> List[Dict[str, str]]:
        if self.log is None:
            return []
        return [entry.to_dict() for entry in self.log.recent(count)]

    # ---- 生命週期 ----

    def _validate(self, payload: Any) -> RunConfig:
        """檢查 /start 的輸入；任何錯誤都在建立瀏覽器之前拋出"""
        if not isinstance(payload, dict):
            raise ControlError("Request body must be a JSON object")

        available = list(self.games.keys())
        game_key = payload.get("gameKey")
        if not game_key:
            raise ControlError("gameKey is required", availableGames=available)
        if not isinstance(game_key, str) or game_key not in self.games:
            raise ControlError(f"Game '{game_key}' not found", availableGames=available)

        phone = payload.get("phone")
        password = payload.get("password")
        if not phone or not password or not isinstance(phone, str) or not isinstance(password, str):
            raise ControlError("phone and password are required")

        num_games = payload.get("numGames")
        # JSON 的 5.0 視為 5；bool 是 int 的子類，需要排除
        if isinstance(num_games, float) and num_games.is_integer():
            num_games = int(num_games)
        if (
            isinstance(num_games, bool)
            or not isinstance(num_games, int)
            or not MIN_GAMES <= num_games <= MAX_GAMES
        ):
            raise ControlError(f"numGames must be between {MIN_GAMES} and {MAX_GAMES}")

        return RunConfig(
            game=self.games[game_key],
            phone=phone,
            password=password,
            num_games=num_games,
        )

    def start(self, payload: Any) -> Dict[str, Any]:
        """驗證輸入、建立新的 Run 並在背景執行緒啟動"""
        with self._lock:
            if self.state is not None and self.state.is_running:
                snap = self.state.snapshot()
                raise ControlError(
                    "A bot is already running",
                    currentGame=snap["currentGame"],
                    totalGames=snap["totalGames"],
                )

            run_config = self._validate(payload)

            state = RunState()
            log = LogBuffer()
            state.begin(run_config.num_games)
            runner = GameRunner(
                run_config,
                self.general,
                state,
                log,
                session_factory=self.session_factory,
                rng=self.rng_factory(),
                notifier=self.notifier,
            )
            thread = threading.Thread(target=runner.run, name="GameRunner", daemon=True)

            self.run_config = run_config
            self.state = state
            self.log = log
            self.runner = runner
            self.thread = thread
            thread.start()

        logging.info(
            f"[API] Run 已啟動: {run_config.game.key} x {run_config.num_games} (phone={run_config.phone})"
        )
        return {
            "game": run_config.game.name,
            "phone": run_config.phone,
            "numGames": run_config.num_games,
        }

    def _require_running(self) -> RunState:
        if self.state is None or not self.state.is_running:
            raise ControlError("No bot running")
        return self.state

    def stop(self) -> Dict[str, Any]:
        """要求停止（RUNNING / PAUSED -> STOPPING），回傳當下統計"""
        with self._lock:
            if self.state is None:
                raise ControlError("No bot running")
            if not self.state.is_running:
                raise ControlError("Bot is not running")
            try:
                self.state.transition(RunPhase.STOPPING, allowed_from={RunPhase.RUNNING, RunPhase.PAUSED})
            except InvalidTransition as e:
                raise ControlError("Stop already requested", state=e.current.value)
            self.log.add("[Runner] 已要求停止...", "warning")
        return self.stats()["stats"]

    def pause(self):
        """RUNNING -> PAUSED；目前這局不受影響，下一局開始前生效"""
        with self._lock:
            state = self._require_running()
            if state.is_paused:
                raise ControlError("Bot is already paused")
            try:
                state.transition(RunPhase.PAUSED, allowed_from={RunPhase.RUNNING})
            except InvalidTransition as e:
                raise ControlError("Bot cannot be paused", state=e.current.value)
            self.log.add("[Runner] Bot 暫停", "warning")

    def resume(self):
        """PAUSED -> RUNNING"""
        with self._lock:
            state = self._require_running()
            if not state.is_paused:
                raise ControlError("Bot is not paused")
            try:
                state.transition(RunPhase.RUNNING, allowed_from={RunPhase.PAUSED})
            except InvalidTransition as e:
                raise ControlError("Bot cannot be resumed", state=e.current.value)
            self.log.add("[Runner] Bot 恢復", "success")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """等待背景執行緒結束；回傳是否已結束"""
        thread = self.thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def shutdown(self, grace: Optional[float] = None) -> bool:
        """程序結束前呼叫：要求停止並等待最多 grace 秒"""
        grace = self.general.shutdown_grace if grace is None else grace
        if self.state is not None and self.state.is_running:
            logging.info("[API] 停止進行中的 Run...")
            try:
                self.stop()
            except ControlError as e:
                logging.info(f"[API] {e.message}")
        return self.wait(grace)
