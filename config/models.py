"""配置數據模型"""
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class GameConfig:
    """單一遊戲的設定模型（來自 games_config.json 的一筆）"""

    key: str
    name: str

    # 網址：login / home / 遊戲入口，以及重導後遊戲頁的比對子字串
    login_url: str
    home_url: str
    game_url: str
    game_url_cmp: str

    room_code: str = ""
    delay_between_scores: float = 1.0  # 秒
    sequences: List[List[int]] = field(default_factory=list)

    enabled: bool = True


@dataclass
class GeneralConfig:
    """等待時間與重試次數（單位：秒，另有註明者除外）"""

    # 登入
    max_login_attempts: int = 3
    page_load_timeout: float = 900.0  # 15 分鐘，網站很重
    selector_timeout: float = 120.0
    typing_delay_ms: int = 100
    field_pause: float = 1.0
    login_redirect_timeout: float = 30.0
    login_retry_delay: float = 5.0

    # 導航
    navigation_settle: float = 10.0
    redirect_timeout: float = 90.0
    home_retry_delay: float = 5.0
    max_navigation_redirects: int = 3
    relaxed_retry_delay: float = 10.0
    relaxed_settle: float = 30.0

    # 遊戲
    game_settle: float = 15.0
    game_end_margin: float = 60.0
    progress_interval: float = 30.0
    return_home_attempts: int = 3
    return_home_delay: float = 10.0
    between_games_pause: float = 5.0

    # 輪詢
    pause_poll_interval: float = 1.0
    poll_initial_interval: float = 0.5
    poll_max_interval: float = 8.0

    # 瀏覽器 / 程序
    browser_close_delay: float = 2.0
    shutdown_grace: float = 3.0
    headless: bool = True
    executable_path: Optional[str] = None


@dataclass(frozen=True)
class RunConfig:
    """一次 Run 的設定；Run 開始後不可變更"""

    game: GameConfig
    phone: str
    password: str = field(repr=False)
    num_games: int = 1
