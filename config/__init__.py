"""配置管理模組"""
from .models import GameConfig, GeneralConfig, RunConfig
from .loader import ConfigError, load_games, load_general_config, parse_game

__all__ = [
    "GameConfig",
    "GeneralConfig",
    "RunConfig",
    "ConfigError",
    "load_games",
    "load_general_config",
    "parse_game",
]
