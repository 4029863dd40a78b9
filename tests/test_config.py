import json

import pytest

from config.loader import ConfigError, load_games, load_general_config, parse_game

VALID_GAME = {
    "name": "Bowling",
    "loginUrl": "https://t.example/Account/Login",
    "homeUrl": "https://t.example/Home/Index",
    "gameUrl": "https://t.example/Game/Play",
    "gameUrlCmp": "play.t.example",
    "roomCode": "ROOM-1",
    "delayBetweenScores": 2,
    "sequences": [[10, 20], [30]],
}


def _write(tmp_path, data):
    (tmp_path / "games_config.json").write_text(json.dumps(data), encoding="utf-8")
    return tmp_path


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("GAMES_CONFIG", "HEADLESS", "BROWSER_EXECUTABLE_PATH", "CHROME_PATH"):
        monkeypatch.delenv(name, raising=False)


class TestParseGame:
    def test_camel_case_fields(self):
        game = parse_game("bowling", VALID_GAME)
        assert game.key == "bowling"
        assert game.game_url_cmp == "play.t.example"
        assert game.room_code == "ROOM-1"
        assert game.delay_between_scores == 2.0
        assert game.sequences == [[10, 20], [30]]
        assert game.enabled is True

    def test_snake_case_fields(self):
        raw = {
            "login_url": "a", "home_url": "b", "game_url": "c", "game_url_cmp": "d",
            "sequences": [[1]],
        }
        game = parse_game("x", raw)
        assert game.name == "x"
        assert game.delay_between_scores == 1.0

    def test_missing_url(self):
        raw = dict(VALID_GAME)
        del raw["homeUrl"]
        with pytest.raises(ConfigError, match="home_url"):
            parse_game("bowling", raw)

    @pytest.mark.parametrize("sequences", [None, [], [[]], [[1, "2"]], [[True]], [5]])
    def test_bad_sequences(self, sequences):
        with pytest.raises(ConfigError):
            parse_game("bowling", dict(VALID_GAME, sequences=sequences))

    @pytest.mark.parametrize("delay", [-1, "1", True])
    def test_bad_delay(self, delay):
        with pytest.raises(ConfigError):
            parse_game("bowling", dict(VALID_GAME, delayBetweenScores=delay))


class TestLoadGames:
    def test_disabled_games_skipped(self, tmp_path):
        base = _write(tmp_path, {"games": {
            "bowling": VALID_GAME,
            "darts": dict(VALID_GAME, name="Darts", enabled=False),
        }})
        games = load_games(base)
        assert list(games) == ["bowling"]

    def test_env_override_path(self, tmp_path, monkeypatch):
        other = tmp_path / "other.json"
        other.write_text(json.dumps({"games": {"golf": VALID_GAME}}), encoding="utf-8")
        monkeypatch.setenv("GAMES_CONFIG", str(other))
        assert list(load_games(tmp_path)) == ["golf"]

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_games(tmp_path)

    def test_top_level_must_be_object(self, tmp_path):
        with pytest.raises(ConfigError):
            load_games(_write(tmp_path, [1, 2]))

    def test_shipped_config_loads(self):
        from pathlib import Path

        games = load_games(Path(__file__).resolve().parent.parent)
        assert games
        assert all(g.enabled and g.sequences for g in games.values())


class TestLoadGeneral:
    def test_defaults_when_block_missing(self, tmp_path):
        general = load_general_config(_write(tmp_path, {"games": {}}))
        assert general.max_login_attempts == 3
        assert general.max_navigation_redirects == 3
        assert general.headless is True

    def test_values_and_unknown_keys(self, tmp_path):
        base = _write(tmp_path, {"general": {"redirect_timeout": 12, "nonsense": 1}})
        general = load_general_config(base)
        assert general.redirect_timeout == 12

    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HEADLESS", "false")
        monkeypatch.setenv("CHROME_PATH", "/usr/bin/chromium")
        general = load_general_config(_write(tmp_path, {"general": {"headless": True}}))
        assert general.headless is False
        assert general.executable_path == "/usr/bin/chromium"

    @pytest.mark.parametrize(
        "general",
        [
            {"page_load_timeout": "900"},
            {"progress_interval": -1},
            {"progress_interval": 0},
            {"pause_poll_interval": 0},
            {"redirect_timeout": None},
            {"max_login_attempts": 0},
            {"max_login_attempts": 2.5},
            {"max_navigation_redirects": True},
            {"headless": "yes"},
            {"executable_path": 5},
        ],
    )
    def test_invalid_values_rejected(self, tmp_path, general):
        with pytest.raises(ConfigError):
            load_general_config(_write(tmp_path, {"general": general}))

    def test_numeric_values_normalized(self, tmp_path):
        base = _write(tmp_path, {"general": {"page_load_timeout": 60, "max_navigation_redirects": 0}})
        general = load_general_config(base)
        assert general.page_load_timeout == 60.0
        assert isinstance(general.page_load_timeout, float)
        assert general.max_navigation_redirects == 0

    def test_general_block_must_be_object(self, tmp_path):
        with pytest.raises(ConfigError):
            load_general_config(_write(tmp_path, {"general": [1]}))
