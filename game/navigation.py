"""登入與遊戲頁導航（含重導向處理）"""
from enum import Enum
from typing import Awaitable, Callable

from playwright.async_api import Page, TimeoutError as PWTimeoutError

from config.models import GameConfig, GeneralConfig, RunConfig
from core.browser import current_url, wait_for_url_contains, type_slowly
from core.utils import sleep
from game.state import LogBuffer

PHONE_SELECTOR = "#msisdn"
PASSWORD_SELECTOR = "#password"
SUBMIT_SELECTOR = "#login"


class PageKind(Enum):
    TARGET = "target"          # 重導後的遊戲頁
    INITIAL = "initial"        # 仍在遊戲入口 URL，尚未重導
    LOGIN = "login"
    HOME = "home"
    UNEXPECTED = "unexpected"


def classify_url(url: str, game: GameConfig) -> PageKind:
    """依子字串判斷目前所在頁面；順序有意義（遊戲頁 URL 可能同時包含入口網域）"""
    if game.game_url_cmp in url:
        return PageKind.TARGET
    if game.game_url in url:
        return PageKind.INITIAL
    if game.login_url in url:
        return PageKind.LOGIN
    if game.home_url in url:
        return PageKind.HOME
    return PageKind.UNEXPECTED


async def _wait_url(page: Page, fragment: str, timeout: float, general: GeneralConfig) -> bool:
    return await wait_for_url_contains(
        page,
        fragment,
        timeout,
        initial_interval=general.poll_initial_interval,
        max_interval=general.poll_max_interval,
    )


async def login(page: Page, run: RunConfig, general: GeneralConfig, log: LogBuffer) -> bool:
    """
    以手機號 / 密碼登入，最多 max_login_attempts 次
    每次：載入登入頁 -> 等表單 -> 填兩個欄位 -> 點擊登入 -> 等 URL 進入 home
    全部失敗回傳 False（由呼叫端中止 Run）
    """
    game = run.game
    attempts = general.max_login_attempts

    for attempt in range(1, attempts + 1):
        log.add(f"[Login] 登入嘗試 {attempt}/{attempts}")
        try:
            log.add("[Login] 載入登入頁（網站較重，請耐心等候）...")
            await page.goto(
                game.login_url,
                wait_until="networkidle",
                timeout=general.page_load_timeout * 1000,
            )
            log.add(f"[Login] 登入頁已載入: {game.login_url}", "success")

            await page.wait_for_selector(PHONE_SELECTOR, timeout=general.selector_timeout * 1000)

            await type_slowly(page, PHONE_SELECTOR, run.phone, general.typing_delay_ms)
            await sleep(general.field_pause)
            await type_slowly(page, PASSWORD_SELECTOR, run.password, general.typing_delay_ms)
            await sleep(general.field_pause)
            log.add(f"[Login] 表單已填寫 - Phone: {run.phone}")

            await page.click(SUBMIT_SELECTOR)
            log.add("[Login] 已點擊登入，等待重導向...", "warning")

            if await _wait_url(page, game.home_url, general.login_redirect_timeout, general):
                log.add("[Login] 🎉 登入成功", "success")
                return True

            log.add(f"[Login] 未進入首頁，目前 URL: {current_url(page)}", "error")
        except Exception as e:
            log.add(f"[Login] 第 {attempt} 次嘗試發生錯誤: {e}", "error")
            if attempt < attempts:
                log.add(f"[Login] {general.login_retry_delay:g}s 後重試...", "warning")
                await sleep(general.login_retry_delay)

    log.add(f"[Login] ❌ {attempts} 次嘗試後仍無法登入", "error")
    return False


async def _relaxed_retry(page: Page, game: GameConfig, general: GeneralConfig, log: LogBuffer) -> bool:
    """goto 逾時後的唯一一次重試：只等 DOMContentLoaded"""
    log.add("[Nav] 偵測到逾時，放寬等待條件重試一次...", "warning")
    try:
        await sleep(general.relaxed_retry_delay)
        await page.goto(
            game.game_url,
            wait_until="domcontentloaded",
            timeout=general.page_load_timeout * 1000,
        )
        log.add("[Nav] 第二次嘗試成功", "success")
        await sleep(general.relaxed_settle)
        return True
    except Exception as e:
        log.add(f"[Nav] 第二次嘗試失敗: {e}", "error")
        return False


async def navigate_to_game(
    page: Page,
    run: RunConfig,
    general: GeneralConfig,
    log: LogBuffer,
    relogin: Callable[[], Awaitable[bool]],
    depth: int = 0,
) -> bool:
    """
    前往遊戲頁並依落地 URL 分類處理：
    - TARGET：成功
    - INITIAL：輪詢等待重導到遊戲頁
    - LOGIN：重新登入後再導航
    - HOME：稍候再導航
    - UNEXPECTED：失敗
    重導遞迴深度受 max_navigation_redirects 限制
    """
    game = run.game
    if depth > general.max_navigation_redirects:
        log.add(f"[Nav] 重導次數超過上限 ({general.max_navigation_redirects})，放棄", "error")
        return False

    log.add(f"[Nav] 🎮 前往遊戲: {game.game_url}", "game")
    try:
        await page.goto(
            game.game_url,
            wait_until="networkidle",
            timeout=general.page_load_timeout * 1000,
        )
    except PWTimeoutError as e:
        log.add(f"[Nav] 導航逾時: {e}", "error")
        return await _relaxed_retry(page, game, general, log)
    except Exception as e:
        log.add(f"[Nav] 導航錯誤: {e}", "error")
        return False

    log.add("[Nav] 頁面已載入，等待穩定...", "success")
    await sleep(general.navigation_settle)

    url = current_url(page)
    kind = classify_url(url, game)
    log.add(f"[Nav] 導航後 URL: {url} ({kind.value})")

    if kind is PageKind.TARGET:
        log.add("[Nav] ✅ 遊戲頁已載入", "success")
        return True

    if kind is PageKind.INITIAL:
        log.add(f"[Nav] 仍在入口 URL，最多等待 {general.redirect_timeout:g}s 重導...", "warning")
        if await _wait_url(page, game.game_url_cmp, general.redirect_timeout, general):
            log.add("[Nav] ✅ 重導後遊戲頁已載入", "success")
            return True
        log.add(f"[Nav] 未重導到 {game.game_url_cmp}，最終 URL: {current_url(page)}", "error")
        return False

    if kind is PageKind.LOGIN:
        log.add("[Nav] 被導回登入頁，需要重新登入", "warning")
        if await relogin():
            log.add("[Nav] 重新登入成功，再次導航...")
            return await navigate_to_game(page, run, general, log, relogin, depth + 1)
        return False

    if kind is PageKind.HOME:
        log.add(f"[Nav] 被導回首頁，{general.home_retry_delay:g}s 後重試...", "warning")
        await sleep(general.home_retry_delay)
        return await navigate_to_game(page, run, general, log, relogin, depth + 1)

    log.add(f"[Nav] 非預期的 URL: {url}", "error")
    return False
