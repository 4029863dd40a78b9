"""
遊戲執行器 - GameRunner 類的實現

負責一次 Run 的完整流程：
- 建立瀏覽器 Session
- 登入
- 依序玩 N 局（每局前檢查停止 / 暫停）
- 結束時關閉瀏覽器並回報

注意：api/controller.py 的 RunController 會在背景執行緒中呼叫 run()
"""
import asyncio
from typing import Callable, Optional

import numpy as np
from playwright.async_api import Page

from config.models import GeneralConfig, RunConfig
from core.browser import BrowserSession, current_url
from core.utils import sleep, format_uptime
from game.state import LogBuffer, RunState
from game.navigation import login, navigate_to_game
from game.actions import play_game
from notification.lark import LarkClient


class GameRunner:
    """
    掌管單一 Run：
    - 啟動瀏覽器 -> 登入
    - 迴圈地：檢查停止/暫停 -> 導航到遊戲頁 -> 注入分數 -> 更新計數
    """

    def __init__(
        self,
        run_config: RunConfig,
        general: GeneralConfig,
        state: RunState,
        log: LogBuffer,
        session_factory: Callable[[GeneralConfig], BrowserSession] = BrowserSession,
        rng: Optional[np.random.Generator] = None,
        notifier: Optional[LarkClient] = None,
    ):
        self.run_config = run_config
        self.general = general
        self.state = state
        self.log = log
        self.session_factory = session_factory
        self.rng = rng if rng is not None else np.random.default_rng()
        self.notifier = notifier
        self.session: Optional[BrowserSession] = None
        self.page: Optional[Page] = None

    async def _login(self) -> bool:
        return await login(self.page, self.run_config, self.general, self.log)

    async def _navigate(self) -> bool:
        return await navigate_to_game(
            self.page, self.run_config, self.general, self.log, relogin=self._login
        )

    async def _wait_while_paused(self):
        """暫停時輪詢等待，直到恢復或收到停止"""
        announced = False
        while self.state.is_paused and not self.state.stop_requested:
            if not announced:
                self.log.add("[Runner] ⏸️ 已暫停，等待恢復", "warning")
                announced = True
            await sleep(self.general.pause_poll_interval)
        if announced and not self.state.stop_requested:
            self.log.add("[Runner] ▶️ 已恢復")

    async def _play_all(self):
        total = self.run_config.num_games
        login_url = self.run_config.game.login_url

        for game_num in range(1, total + 1):
            if self.state.stop_requested:
                self.log.add("[Runner] 使用者要求停止", "warning")
                break
            await self._wait_while_paused()
            if self.state.stop_requested:
                self.log.add("[Runner] 使用者要求停止", "warning")
                break

            self.state.set_current_game(game_num)
            self.log.add(f"[Runner] === 第 {game_num}/{total} 局 ===", "game")

            if not await self._navigate():
                self.log.add(f"[Runner] 第 {game_num} 局導航失敗", "error")
                if login_url in current_url(self.page):
                    self.log.add("[Runner] 嘗試重新登入...", "warning")
                    if not await self._login():
                        self.log.add("[Runner] 無法重新登入，中止 Run", "error")
                        break
                    continue
                self.log.add("[Runner] 中止 Run", "error")
                break

            if await play_game(self.page, self.run_config, self.general, self.state, self.log, self.rng):
                self.state.record_result(True)
                self.log.add(f"[Runner] 第 {game_num}/{total} 局成功", "success")
                if game_num < total:
                    self.log.add(f"[Runner] 休息 {self.general.between_games_pause:g}s...")
                    await sleep(self.general.between_games_pause)
            else:
                self.state.record_result(False)
                self.log.add(f"[Runner] 第 {game_num}/{total} 局失敗", "error")

    def summary(self) -> dict:
        """Run 結束時的統計摘要（給 Lark 報告用）"""
        snap = self.state.snapshot()
        return {
            "game": self.run_config.game.name,
            "phone": self.run_config.phone,
            "total_games": snap["totalGames"],
            "games_played": snap["gamesPlayed"],
            "games_successful": snap["gamesSuccessful"],
            "games_failed": snap["gamesFailed"],
            "success_rate": snap["successRate"],
            "uptime": format_uptime(snap["uptime"]),
            "last_game_score": snap["lastGameScore"],
        }

    def _send_report(self, summary: dict):
        """推播報告；webhook 可能很慢，呼叫時 Run 必須已回到 IDLE"""
        if not self.notifier:
            return
        try:
            self.notifier.send_run_report(summary)
        except Exception as e:
            self.log.add(f"[Lark] 發送報告失敗: {e}", "warning")

    async def run_async(self):
        """主執行入口：建立瀏覽器 -> 登入 -> 逐局執行 -> 關閉"""
        game = self.run_config.game
        self.log.add(f"=== 啟動 Bot - {game.name} ===", "game")
        self.log.add(f"[Runner] 預計局數: {self.run_config.num_games}")
        try:
            self.session = self.session_factory(self.general)
            self.log.add("[Runner] 設定瀏覽器...")
            self.page = await self.session.start()
            self.log.add("[Runner] 瀏覽器已啟動", "success")

            if not await self._login():
                self.log.add("[Runner] 登入失敗，中止 Run", "error")
                return

            await self._play_all()

            snap = self.state.snapshot()
            self.log.add("=== Bot 結束 ===", "success")
            self.log.add(
                f"[Runner] 成功局數: {snap['gamesSuccessful']}/{self.run_config.num_games}",
                "success",
            )
        except Exception as e:
            self.log.add(f"[Runner] 致命錯誤: {e}", "error")
        finally:
            if self.session is not None:
                await sleep(self.general.browser_close_delay)
                await self.session.close()
                self.log.add("[Runner] 瀏覽器已關閉")
            summary = self.summary()
            self.state.finish()
            self._send_report(summary)

    def run(self):
        """同步包裝器，用於線程啟動"""
        asyncio.run(self.run_async())
