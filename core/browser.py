"""瀏覽器工具函數與 Session 管理"""
import asyncio
import logging
from typing import Optional

from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Page,
    Playwright,
)

from config.models import GeneralConfig

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-blink-features=AutomationControlled",
    "--disable-setuid-sandbox",
]

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)

VIEWPORT = {"width": 1280, "height": 720}

# 隱藏 navigator.webdriver，必須在頁面腳本執行前注入
HIDE_WEBDRIVER_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', {
    get: () => undefined
});
"""


class BrowserSession:
    """
    持有一組 Playwright / Browser / Context / Page
    一次 Run 只會有一個 Session，Run 結束時關閉
    """

    def __init__(self, general: GeneralConfig):
        self.general = general
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None

    async def start(self) -> Page:
        """啟動 Chromium 並回傳新分頁"""
        self.playwright = await async_playwright().start()

        launch_kwargs = {
            "headless": self.general.headless,
            "args": LAUNCH_ARGS,
            "timeout": 120_000,  # 啟動最多 2 分鐘
        }
        if self.general.executable_path:
            launch_kwargs["executable_path"] = self.general.executable_path

        self.browser = await self.playwright.chromium.launch(**launch_kwargs)
        self.context = await self.browser.new_context(
            viewport=VIEWPORT,
            user_agent=USER_AGENT,
        )
        # 頁面很重，預設逾時拉長到 page_load_timeout
        timeout_ms = self.general.page_load_timeout * 1000
        self.context.set_default_navigation_timeout(timeout_ms)
        self.context.set_default_timeout(timeout_ms)
        await self.context.add_init_script(HIDE_WEBDRIVER_SCRIPT)

        self.page = await self.context.new_page()
        return self.page

    async def close(self):
        """依序關閉 context / browser / playwright；關閉失敗只記錄不拋出"""
        for name, target in (("context", self.context), ("browser", self.browser)):
            if target is None:
                continue
            try:
                await target.close()
            except Exception as e:
                logging.warning(f"[Browser] 關閉 {name} 失敗: {e}")
        if self.playwright is not None:
            try:
                await self.playwright.stop()
            except Exception as e:
                logging.warning(f"[Browser] 停止 playwright 失敗: {e}")
        self.page = None
        self.context = None
        self.browser = None
        self.playwright = None


def current_url(page: Optional[Page]) -> str:
    """回傳目前 URL；頁面不存在時回傳空字串"""
    if page is None:
        return ""
    try:
        return page.url or ""
    except Exception as e:
        logging.debug(f"讀取 URL 失敗: {e}")
        return ""


async def wait_for_url_contains(
    page: Page,
    fragment: str,
    timeout: float,
    initial_interval: float = 0.5,
    max_interval: float = 8.0,
) -> bool:
    """
    輪詢 page.url 直到包含 fragment，間隔以指數退避成長（上限 max_interval）
    在 timeout 秒內出現回傳 True，否則 False
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    interval = initial_interval
    while True:
        if fragment in current_url(page):
            return True
        remaining = deadline - loop.time()
        if remaining <= 0:
            return False
        await asyncio.sleep(max(0.0, min(interval, remaining)))
        interval = min(interval * 2, max_interval)


async def type_slowly(page: Page, selector: str, text: str, delay_ms: int = 100):
    """逐字輸入（每鍵 delay_ms 毫秒），模擬真人輸入"""
    await page.type(selector, text, delay=delay_ms)
