"""
共用測試工具：以記憶體中的假頁面取代 Chromium

FakePage 只實作 Run 用到的 Playwright Page 方法（goto / wait_for_selector /
type / click / evaluate / url），所有等待時間在 fast_general() 中設為 0。
"""
import asyncio
import threading
import time
from dataclasses import fields
from typing import Dict, List, Optional

import pytest

from config.models import GameConfig, GeneralConfig, RunConfig
from game.state import LogBuffer, RunState

LOGIN_URL = "https://t.example/Account/Login"
HOME_URL = "https://t.example/Home/Index"
GAME_URL = "https://t.example/Game/Play"
GAME_URL_CMP = "play.t.example"
TARGET_URL = "https://play.t.example/room/42"


def fast_general(**overrides) -> GeneralConfig:
    """所有秒數歸零的 GeneralConfig"""
    values = {f.name: 0.0 for f in fields(GeneralConfig) if f.type is float}
    values["pause_poll_interval"] = 0.005
    values["typing_delay_ms"] = 0
    values.update(overrides)
    return GeneralConfig(**values)


def make_game(sequences=None, **overrides) -> GameConfig:
    values = dict(
        key="bowling",
        name="Bowling",
        login_url=LOGIN_URL,
        home_url=HOME_URL,
        game_url=GAME_URL,
        game_url_cmp=GAME_URL_CMP,
        room_code="ROOM-1",
        delay_between_scores=0.0,
        sequences=sequences or [[10, 20, 30], [5, 15]],
    )
    values.update(overrides)
    return GameConfig(**values)


def wait_until(predicate, timeout: float = 5.0) -> bool:
    """輪詢直到 predicate() 為真"""
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


class FakePage:
    """
    routes: goto 的目標 URL -> 落地結果
      - str：落地 URL
      - tuple：依序的 URL，每讀一次 page.url 前進一格（模擬重導）
      - Exception：goto 拋出
      - list：每次 goto 取出一個（最後一個重複使用）
    """

    def __init__(self, routes=None, after_login: Optional[str] = HOME_URL, evaluate_error=None):
        self.routes: Dict[str, object] = dict(routes or {})
        self.after_login = after_login
        self.evaluate_error = evaluate_error
        self._url = "about:blank"
        self._pending: List[str] = []
        self.calls: List[tuple] = []
        self.typed: Dict[str, str] = {}
        self.scripts: List[str] = []
        self.entered: Dict[str, threading.Event] = {}
        self.gates: Dict[str, threading.Event] = {}

    # ---- 測試控制 ----

    def hold(self, method: str):
        """讓 method 在被呼叫時停住，直到 release()"""
        self.entered[method] = threading.Event()
        self.gates[method] = threading.Event()
        return self.entered[method], self.gates[method]

    async def _checkpoint(self, method: str):
        if method in self.entered:
            self.entered[method].set()
        gate = self.gates.get(method)
        if gate is not None:
            while not gate.is_set():
                await asyncio.sleep(0.005)

    @property
    def url(self) -> str:
        value = self._url
        if self._pending:
            self._url = self._pending.pop(0)
        return value

    # ---- Playwright Page 介面 ----

    async def goto(self, url, wait_until=None, timeout=None):
        self.calls.append(("goto", url, wait_until))
        await self._checkpoint("goto")
        outcome = self.routes.get(url, url)
        if isinstance(outcome, list):
            outcome = outcome.pop(0) if len(outcome) > 1 else outcome[0]
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, tuple):
            self._url, self._pending = outcome[0], list(outcome[1:])
        else:
            self._url, self._pending = outcome, []

    async def wait_for_selector(self, selector, timeout=None):
        self.calls.append(("wait_for_selector", selector))

    async def type(self, selector, text, delay=None):
        self.calls.append(("type", selector))
        self.typed[selector] = text

    async def click(self, selector):
        self.calls.append(("click", selector))
        landing = self.after_login
        if isinstance(landing, list):
            landing = landing.pop(0) if len(landing) > 1 else landing[0]
        if landing is not None:
            self._url, self._pending = landing, []

    async def evaluate(self, script):
        self.calls.append(("evaluate",))
        self.scripts.append(script)
        await self._checkpoint("evaluate")
        if self.evaluate_error is not None:
            raise self.evaluate_error


class FakeSession:
    def __init__(self, general, page: FakePage):
        self.general = general
        self.page = page
        self.started = False
        self.closed = False

    async def start(self):
        self.started = True
        return self.page

    async def close(self):
        self.closed = True


class SessionFactory:
    """記錄建立過的 session，供測試檢查是否有啟動瀏覽器"""

    def __init__(self, page: Optional[FakePage] = None):
        self.page = page or FakePage(routes={GAME_URL: TARGET_URL})
        self.sessions: List[FakeSession] = []

    def __call__(self, general):
        session = FakeSession(general, self.page)
        self.sessions.append(session)
        return session


@pytest.fixture
def game():
    return make_game()


@pytest.fixture
def general():
    return fast_general()


@pytest.fixture
def run_config(game):
    return RunConfig(game=game, phone="66299709", password="secret", num_games=2)


@pytest.fixture
def state():
    return RunState()


@pytest.fixture
def log():
    return LogBuffer()
