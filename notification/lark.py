"""Run 結束報告推播（Lark 自訂機器人 webhook）"""
import time
import logging
from typing import Any, Dict, Optional

import requests

from version import get_version_string

# Lark 即使 HTTP 200 也可能在 body 回傳錯誤碼
_LARK_OK_CODES = (0, None)


class LarkClient:
    """
    只負責把文字送到一個 webhook
    未設定 webhook 時整個 client 為停用狀態，所有 send_* 直接回傳 False
    """

    def __init__(self, webhook: Optional[str], backoff: float = 0.8):
        self.webhook = (webhook or "").strip()
        self.backoff = backoff
        self.enabled = bool(self.webhook)
        if self.enabled:
            logging.info("[Lark] Run 報告推播已啟用")
        else:
            logging.warning("[Lark] 未設定 LARK_WEBHOOK_URL，Run 報告不推播")

    def _post_once(self, payload: Dict[str, Any], timeout: float) -> bool:
        resp = requests.post(self.webhook, json=payload, timeout=timeout)
        if not 200 <= resp.status_code < 300:
            logging.warning("[Lark] HTTP %s：%s", resp.status_code, resp.text[:200])
            return False
        try:
            code = resp.json().get("code")
        except ValueError:
            code = None
        if code not in _LARK_OK_CODES:
            logging.warning("[Lark] webhook 回傳錯誤碼 %s：%s", code, resp.text[:200])
            return False
        return True

    def send_text(self, text: str, retries: int = 2, timeout: float = 6.0) -> bool:
        """送出純文字；失敗時重試 retries 次，間隔線性增加"""
        if not self.enabled:
            logging.debug("[Lark] 停用中，略過：%s", text[:60])
            return False

        payload = {"msg_type": "text", "content": {"text": text}}
        attempts = retries + 1
        for attempt in range(1, attempts + 1):
            try:
                if self._post_once(payload, timeout):
                    logging.info("[Lark] Run 報告已送出")
                    return True
            except requests.RequestException as e:
                logging.warning("[Lark] 第 %d/%d 次傳送失敗：%s", attempt, attempts, e)
            if attempt < attempts:
                time.sleep(self.backoff * attempt)

        logging.error("[Lark] %d 次嘗試後仍無法送出", attempts)
        return False

    def send_run_report(self, summary: Dict[str, Any]) -> bool:
        """
        依 GameRunner.summary() 組出報告文字

        需要的鍵：game, phone, total_games, games_played, games_successful,
        games_failed, success_rate, uptime, last_game_score（可為 None）
        """
        if not self.enabled:
            return False

        played = summary.get("games_played", 0)
        failed = summary.get("games_failed", 0)
        mark = "✅" if played and not failed else "⚠️"

        lines = [
            f"🎮 Multi-Game Bot Run 結束 ({get_version_string()})",
            f"遊戲: {summary.get('game', 'N/A')} / 帳號: {summary.get('phone', 'N/A')}",
            f"{mark} 完成 {played}/{summary.get('total_games', 0)} 局"
            f"（成功 {summary.get('games_successful', 0)}，失敗 {failed}，成功率 {summary.get('success_rate', 0)}%）",
            f"⏱️ 執行時間: {summary.get('uptime', 'N/A')}",
        ]
        last_score = summary.get("last_game_score")
        if last_score is not None:
            lines.append(f"🎯 最後一局分數: {last_score}")

        return self.send_text("\n".join(lines))
