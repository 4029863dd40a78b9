"""遊戲動作：產生分數重播腳本並注入頁面"""
import json
import asyncio
import traceback
from typing import List

import numpy as np
from playwright.async_api import Page

from config.models import GeneralConfig, RunConfig
from core.browser import current_url
from core.utils import sleep
from game.state import LogBuffer, RunState

# 最後一個分數送出後，頁面自行跳回首頁前的等待（毫秒）
REDIRECT_AFTER_SUBMIT_MS = 7000

_SCORE_SCRIPT = """
(async function() {
    const sequence = __SEQUENCE__;
    const DELAY_BETWEEN_SCORES = __DELAY_MS__;
    const ROOM_CODE = __ROOM_CODE__;

    console.log('[ScoreReplay] sequence:', sequence);

    function sleep(ms) {
        return new Promise(resolve => setTimeout(resolve, ms));
    }

    if (typeof Cjfs === 'undefined') {
        console.error('[ScoreReplay] Cjfs not available');
        return;
    }
    if (typeof signalRService === 'undefined') {
        console.error('[ScoreReplay] signalRService not available');
        return;
    }

    async function sendScoreRealTime(score) {
        try {
            const encoder = new Cjfs();
            const encodedScore = await encoder.endcode(score);
            signalRService.sendScore(String(score), encodedScore, ROOM_CODE);
            console.log(`[ScoreReplay] realtime score sent: ${score}`);
        } catch (e) {
            console.error('[ScoreReplay] realtime send failed:', e);
        }
    }

    async function sendFinalScore(score) {
        try {
            const encoder = new Cjfs();
            const encodedScore = await encoder.endcode(score);
            const token = $('input[name=__RequestVerificationToken]').val();
            if (!token) {
                console.error('[ScoreReplay] CSRF token not found');
                return;
            }
            const response = await $.ajax({
                type: 'POST',
                url: '/Game/AddCoins',
                headers: {
                    'RequestVerificationToken': token,
                    'Accept': 'application/json'
                },
                data: { playGameCoins: score, code: encodedScore }
            });
            console.log('[ScoreReplay] final score accepted:', response);
            setTimeout(() => { window.location.href = '/Home/Index'; }, __REDIRECT_MS__);
        } catch (e) {
            console.error('[ScoreReplay] final send failed:', e);
        }
    }

    try {
        for (let i = 0; i < sequence.length - 1; i++) {
            await sendScoreRealTime(sequence[i]);
            if (i < sequence.length - 2) {
                await sleep(DELAY_BETWEEN_SCORES);
            }
        }
        await sleep(100);
        await sendFinalScore(sequence[sequence.length - 1]);
    } catch (error) {
        console.error('[ScoreReplay] main loop failed:', error);
    }
})();
"""


def build_score_script(sequence: List[int], room_code: str, delay_between_scores: float) -> str:
    """
    產生注入頁面的 JS：
    - 除最後一個外，逐一經 signalRService 即時送出（間隔 delay_between_scores 秒）
    - 最後一個分數透過頁面的 $.ajax POST /Game/AddCoins 送出，之後跳回首頁
    """
    if not sequence:
        raise ValueError("score sequence must not be empty")
    replacements = {
        "__SEQUENCE__": json.dumps([int(v) for v in sequence]),
        "__DELAY_MS__": str(int(round(delay_between_scores * 1000))),
        "__ROOM_CODE__": json.dumps(room_code),
        "__REDIRECT_MS__": str(REDIRECT_AFTER_SUBMIT_MS),
    }
    script = _SCORE_SCRIPT
    for placeholder, value in replacements.items():
        script = script.replace(placeholder, value)
    return script


def choose_sequence(sequences: List[List[int]], rng: np.random.Generator) -> List[int]:
    """從設定的序列中均勻隨機挑一組"""
    if not sequences:
        raise ValueError("no score sequences configured")
    return sequences[int(rng.integers(len(sequences)))]


async def _wait_for_game_end(total_wait: float, general: GeneralConfig, log: LogBuffer):
    loop = asyncio.get_running_loop()
    started = loop.time()
    while True:
        elapsed = loop.time() - started
        remaining = total_wait - elapsed
        if remaining <= 0:
            return
        await sleep(min(general.progress_interval, remaining))
        elapsed = loop.time() - started
        log.add(f"[Game] ⏱️ 已等待 {int(elapsed)}s / 剩餘約 {max(0, int(total_wait - elapsed))}s")


async def _confirm_back_home(page: Page, run: RunConfig, general: GeneralConfig, log: LogBuffer) -> bool:
    """確認是否已跳回首頁；只做紀錄，不影響本局結果"""
    for attempt in range(1, general.return_home_attempts + 1):
        url = current_url(page)
        log.add(f"[Game] 最終 URL（第 {attempt} 次檢查）: {url}")
        if run.game.home_url in url:
            log.add("[Game] ✅ 已回到首頁", "success")
            return True
        if attempt < general.return_home_attempts:
            log.add(f"[Game] 尚未回到首頁，{general.return_home_delay:g}s 後再檢查...", "warning")
            await sleep(general.return_home_delay)
    return False


async def play_game(
    page: Page,
    run: RunConfig,
    general: GeneralConfig,
    state: RunState,
    log: LogBuffer,
    rng: np.random.Generator,
) -> bool:
    """
    玩一局：挑序列 -> 等頁面穩定 -> 注入腳本 -> 等待結束 -> 確認回到首頁
    腳本本身的錯誤只記錄警告，本局仍視為完成
    """
    game = run.game
    try:
        sequence = choose_sequence(game.sequences, rng)
        final_score = sequence[-1]

        log.add("[Game] 🎳 本局開始", "game")
        log.add(f"[Game] 選用序列，最終分數: {final_score}（共 {len(sequence)} 個分數）", "game")
        state.set_last_score(final_score)

        log.add(f"[Game] 等待頁面穩定 ({general.game_settle:g}s)...", "warning")
        await sleep(general.game_settle)
        log.add(f"[Game] 頁面穩定，URL: {current_url(page)}", "success")

        script = build_score_script(sequence, game.room_code, game.delay_between_scores)
        log.add("[Game] 🚀 執行分數腳本...", "game")
        try:
            await page.evaluate(script)
            log.add("[Game] 腳本執行完成", "success")
        except Exception as e:
            log.add(f"[Game] 腳本執行錯誤，繼續流程: {e}", "warning")

        total_wait = len(sequence) * game.delay_between_scores + general.game_end_margin
        log.add(f"[Game] 等待本局結束（約 {total_wait:g}s）...")
        await _wait_for_game_end(total_wait, general, log)
        log.add("[Game] 🎉 本局結束", "success")

        await _confirm_back_home(page, run, general, log)
        return True
    except Exception as e:
        log.add(f"[Game] ❌ 遊戲過程發生錯誤: {e}", "error")
        log.add(traceback.format_exc(), "error")
        return False
