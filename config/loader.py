"""配置讀取模組"""
import os
import json
import logging
from dataclasses import fields
from pathlib import Path
from typing import Dict, Any

from .models import GameConfig, GeneralConfig

CONFIG_FILENAME = "games_config.json"

_REQUIRED_URLS = ("login_url", "home_url", "game_url", "game_url_cmp")

# 為 0 會造成忙迴圈或立即逾時
_GENERAL_POSITIVE = {
    "page_load_timeout",
    "selector_timeout",
    "progress_interval",
    "pause_poll_interval",
    "poll_initial_interval",
    "poll_max_interval",
}
_GENERAL_MINIMUMS = {"max_login_attempts": 1, "return_home_attempts": 1}


class ConfigError(Exception):
    """games_config.json 內容不合法"""


def _config_path(base_dir: Path) -> Path:
    override = os.getenv("GAMES_CONFIG")
    if override:
        return Path(override)
    return base_dir / CONFIG_FILENAME


def _read_raw(base_dir: Path) -> Dict[str, Any]:
    path = _config_path(base_dir)
    try:
        with path.open("r", encoding="utf-8") as f:
            raw = json.load(f)
        logging.info(f"[Config] 讀取 {path.name} 成功")
    except Exception as e:
        logging.error(f"[Config] 讀取 {path} 失敗: {e}")
        raise
    if not isinstance(raw, dict):
        raise ConfigError(f"{path.name} 最外層必須是物件")
    return raw


def _parse_sequences(key: str, raw_sequences: Any):
    if not isinstance(raw_sequences, list) or not raw_sequences:
        raise ConfigError(f"遊戲 '{key}' 沒有任何分數序列")
    sequences = []
    for idx, seq in enumerate(raw_sequences):
        if not isinstance(seq, list) or not seq:
            raise ConfigError(f"遊戲 '{key}' 第 {idx + 1} 個序列為空或格式錯誤")
        # bool 是 int 的子類，需要排除
        if any(isinstance(v, bool) or not isinstance(v, int) for v in seq):
            raise ConfigError(f"遊戲 '{key}' 第 {idx + 1} 個序列含非整數分數")
        sequences.append(list(seq))
    return sequences


def parse_game(key: str, raw: Dict[str, Any]) -> GameConfig:
    """將 JSON 的一筆遊戲設定轉成 GameConfig；欄位缺漏時拋 ConfigError"""
    # JSON 採 camelCase（與 API 一致），同時接受 snake_case
    def pick(snake: str, camel: str, default=None):
        if snake in raw:
            return raw[snake]
        return raw.get(camel, default)

    values = {
        "login_url": pick("login_url", "loginUrl"),
        "home_url": pick("home_url", "homeUrl"),
        "game_url": pick("game_url", "gameUrl"),
        "game_url_cmp": pick("game_url_cmp", "gameUrlCmp"),
    }
    missing = [name for name in _REQUIRED_URLS if not values[name]]
    if missing:
        raise ConfigError(f"遊戲 '{key}' 缺少欄位: {', '.join(missing)}")

    delay = pick("delay_between_scores", "delayBetweenScores", 1.0)
    if isinstance(delay, bool) or not isinstance(delay, (int, float)) or delay < 0:
        raise ConfigError(f"遊戲 '{key}' 的 delayBetweenScores 不合法: {delay!r}")

    return GameConfig(
        key=key,
        name=raw.get("name", key),
        room_code=str(pick("room_code", "roomCode", "")),
        delay_between_scores=float(delay),
        sequences=_parse_sequences(key, raw.get("sequences")),
        enabled=bool(raw.get("enabled", True)),
        **values,
    )


def load_games(base_dir: Path) -> Dict[str, GameConfig]:
    """
    讀取 games_config.json 的 "games" 區塊，返回 {gameKey: GameConfig}
    enabled=false 的遊戲會被略過
    """
    raw = _read_raw(base_dir)
    games: Dict[str, GameConfig] = {}
    for key, entry in raw.get("games", {}).items():
        if not isinstance(entry, dict):
            raise ConfigError(f"遊戲 '{key}' 設定必須是物件")
        game = parse_game(key, entry)
        if not game.enabled:
            logging.info(f"[Config] 遊戲 {key} 已停用，略過")
            continue
        games[key] = game
        logging.info(f"[Config] 載入遊戲 {key} ({game.name})，序列數={len(game.sequences)}")

    if not games:
        logging.warning("[Config] 沒有任何 enabled 的遊戲")
    return games


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_general_value(name: str, expected: Any, value: Any) -> Any:
    """依 GeneralConfig 欄位型別檢查單一值；不合法時拋 ConfigError"""
    if expected is bool:
        if not isinstance(value, bool):
            raise ConfigError(f"general.{name} 必須是 true/false: {value!r}")
        return value
    if name == "executable_path":
        if value is not None and not isinstance(value, str):
            raise ConfigError(f"general.{name} 必須是字串: {value!r}")
        return value or None

    # bool 是 int 的子類，需要排除
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"general.{name} 必須是數字: {value!r}")
    if expected is int and not isinstance(value, int):
        raise ConfigError(f"general.{name} 必須是整數: {value!r}")

    minimum = _GENERAL_MINIMUMS.get(name)
    if minimum is not None and value < minimum:
        raise ConfigError(f"general.{name} 不可小於 {minimum}: {value!r}")
    if name in _GENERAL_POSITIVE and value <= 0:
        raise ConfigError(f"general.{name} 必須大於 0: {value!r}")
    if value < 0:
        raise ConfigError(f"general.{name} 不可為負數: {value!r}")
    return float(value) if expected is float else value


def load_general_config(base_dir: Path) -> GeneralConfig:
    """讀取 "general" 區塊；缺少的鍵使用預設值，環境變數優先"""
    raw = _read_raw(base_dir).get("general", {})
    if not isinstance(raw, dict):
        raise ConfigError("general 區塊必須是物件")
    types = {f.name: f.type for f in fields(GeneralConfig)}

    kwargs = {}
    for k, v in raw.items():
        if k in types:
            kwargs[k] = _parse_general_value(k, types[k], v)
        else:
            logging.warning(f"[Config] general 區塊中未知的設定: {k}")
    config = GeneralConfig(**kwargs)

    headless = os.getenv("HEADLESS")
    if headless:
        config.headless = _env_bool(headless)
    executable = os.getenv("BROWSER_EXECUTABLE_PATH") or os.getenv("CHROME_PATH")
    if executable:
        config.executable_path = executable

    return config
