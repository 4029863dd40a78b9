import pytest
from playwright.async_api import TimeoutError as PWTimeoutError

from game.navigation import PageKind, classify_url, login, navigate_to_game
from conftest import (
    FakePage,
    GAME_URL,
    HOME_URL,
    LOGIN_URL,
    TARGET_URL,
    fast_general,
)


class TestClassifyUrl:
    @pytest.mark.parametrize(
        "url, kind",
        [
            (TARGET_URL, PageKind.TARGET),
            (GAME_URL + "?x=1", PageKind.INITIAL),
            (LOGIN_URL + "?ReturnUrl=%2F", PageKind.LOGIN),
            (HOME_URL, PageKind.HOME),
            ("https://elsewhere.example/", PageKind.UNEXPECTED),
            ("", PageKind.UNEXPECTED),
        ],
    )
    def test_kinds(self, game, url, kind):
        assert classify_url(url, game) is kind

    def test_target_checked_before_initial(self, game):
        # 遊戲頁 URL 同時帶有入口 URL 時仍算 TARGET
        url = f"https://play.t.example/?from={GAME_URL}"
        assert classify_url(url, game) is PageKind.TARGET


class TestLogin:
    @pytest.mark.asyncio
    async def test_success_fills_form_and_submits(self, run_config, general, log):
        page = FakePage()
        assert await login(page, run_config, general, log) is True

        assert page.typed == {"#msisdn": "66299709", "#password": "secret"}
        assert ("click", "#login") in page.calls
        assert ("goto", LOGIN_URL, "networkidle") in page.calls

    @pytest.mark.asyncio
    async def test_password_never_logged(self, run_config, general, log):
        await login(FakePage(), run_config, general, log)
        assert all("secret" not in e.message for e in log.recent(100))

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts_when_not_redirected(self, run_config, log):
        general = fast_general(max_login_attempts=2)
        page = FakePage(after_login=LOGIN_URL)

        assert await login(page, run_config, general, log) is False
        assert [c for c in page.calls if c[0] == "click"] == [("click", "#login")] * 2

    @pytest.mark.asyncio
    async def test_retries_after_exception(self, run_config, general, log):
        page = FakePage(routes={LOGIN_URL: [PWTimeoutError("Timeout 900000ms exceeded"), LOGIN_URL]})

        assert await login(page, run_config, general, log) is True
        gotos = [c for c in page.calls if c[0] == "goto"]
        assert len(gotos) == 2
        assert any(e.type == "error" and "第 1 次" in e.message for e in log.recent(100))


class TestNavigateToGame:
    @staticmethod
    def _relogin(result=True):
        calls = []

        async def relogin():
            calls.append(1)
            return result

        return relogin, calls

    @pytest.mark.asyncio
    async def test_direct_target(self, run_config, general, log):
        page = FakePage(routes={GAME_URL: TARGET_URL})
        relogin, calls = self._relogin()
        assert await navigate_to_game(page, run_config, general, log, relogin) is True
        assert calls == []

    @pytest.mark.asyncio
    async def test_initial_then_redirected(self, run_config, general, log):
        page = FakePage(routes={GAME_URL: (GAME_URL, TARGET_URL)})
        relogin, _ = self._relogin()
        assert await navigate_to_game(page, run_config, general, log, relogin) is True

    @pytest.mark.asyncio
    async def test_initial_never_redirected_fails(self, run_config, general, log):
        page = FakePage(routes={GAME_URL: GAME_URL})
        relogin, _ = self._relogin()
        assert await navigate_to_game(page, run_config, general, log, relogin) is False

    @pytest.mark.asyncio
    async def test_login_redirect_relogins_and_retries(self, run_config, general, log):
        page = FakePage(routes={GAME_URL: [LOGIN_URL, TARGET_URL]})
        relogin, calls = self._relogin(True)

        assert await navigate_to_game(page, run_config, general, log, relogin) is True
        assert calls == [1]
        assert len([c for c in page.calls if c[:2] == ("goto", GAME_URL)]) == 2

    @pytest.mark.asyncio
    async def test_login_redirect_with_failed_relogin(self, run_config, general, log):
        page = FakePage(routes={GAME_URL: LOGIN_URL})
        relogin, calls = self._relogin(False)
        assert await navigate_to_game(page, run_config, general, log, relogin) is False
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_home_redirect_retries(self, run_config, general, log):
        page = FakePage(routes={GAME_URL: [HOME_URL, TARGET_URL]})
        relogin, _ = self._relogin()
        assert await navigate_to_game(page, run_config, general, log, relogin) is True

    @pytest.mark.asyncio
    async def test_redirect_loop_is_bounded(self, run_config, log):
        general = fast_general(max_navigation_redirects=2)
        page = FakePage(routes={GAME_URL: HOME_URL})
        relogin, _ = self._relogin()

        assert await navigate_to_game(page, run_config, general, log, relogin) is False
        # 第一次 + 2 次重試
        assert len([c for c in page.calls if c[0] == "goto"]) == 3

    @pytest.mark.asyncio
    async def test_unexpected_url_is_failure(self, run_config, general, log):
        page = FakePage(routes={GAME_URL: "https://ads.example/"})
        relogin, _ = self._relogin()
        assert await navigate_to_game(page, run_config, general, log, relogin) is False

    @pytest.mark.asyncio
    async def test_timeout_retries_once_with_relaxed_wait(self, run_config, general, log):
        page = FakePage(routes={GAME_URL: [PWTimeoutError("Timeout"), TARGET_URL]})
        relogin, _ = self._relogin()

        assert await navigate_to_game(page, run_config, general, log, relogin) is True
        gotos = [c for c in page.calls if c[0] == "goto"]
        assert [c[2] for c in gotos] == ["networkidle", "domcontentloaded"]

    @pytest.mark.asyncio
    async def test_relaxed_retry_failure_gives_up(self, run_config, general, log):
        page = FakePage(routes={GAME_URL: PWTimeoutError("Timeout")})
        relogin, _ = self._relogin()

        assert await navigate_to_game(page, run_config, general, log, relogin) is False
        assert len([c for c in page.calls if c[0] == "goto"]) == 2

    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(self, run_config, general, log):
        page = FakePage(routes={GAME_URL: RuntimeError("net::ERR_NAME_NOT_RESOLVED")})
        relogin, _ = self._relogin()

        assert await navigate_to_game(page, run_config, general, log, relogin) is False
        assert len([c for c in page.calls if c[0] == "goto"]) == 1
