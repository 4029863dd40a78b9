"""
主執行程序 - 啟動 HTTP 控制介面

這個文件負責：
- 初始化環境和日誌
- 讀取配置（games_config.json）
- 建立 RunController（api/controller.py）與 Flask app（api/server.py）
- 註冊 Ctrl+C / SIGTERM：要求停止進行中的 Run，稍候後退出
"""
import os
import sys
import signal
import logging
from pathlib import Path

from dotenv import load_dotenv

from version import get_version_string
from config import load_games, load_general_config
from notification import LarkClient
from api import RunController, create_app

# BASE_DIR: 若是打包成 .exe，取可執行檔所在資料夾；否則取 .py 檔案所在資料夾
BASE_DIR = Path(getattr(sys, "frozen", False) and Path(sys.executable).parent or Path(__file__).resolve().parent)

# 載入 .env（PORT、LARK Webhook 等）
load_dotenv(BASE_DIR / "dotenv.env")

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(message)s",
)
# Flask 開發伺服器的存取日誌太吵
logging.getLogger("werkzeug").setLevel(logging.WARNING)


def install_signal_handlers(controller: RunController):
    """Ctrl+C / SIGTERM：要求停止 Run，最多等待 shutdown_grace 秒後退出"""

    def handle_interrupt(sig, frame):
        print("\n🛑 收到中止訊號，關閉伺服器…")
        finished = controller.shutdown()
        if not finished:
            logging.warning("[Runner] Run 未在時限內結束，強制退出")
        print("👋 伺服器已停止")
        sys.exit(0)

    signal.signal(signal.SIGINT, handle_interrupt)
    signal.signal(signal.SIGTERM, handle_interrupt)


def build_controller(base_dir: Path = BASE_DIR) -> RunController:
    """讀取配置並建立 RunController"""
    logging.info("[Runner] 開始讀取設定檔")
    games = load_games(base_dir)
    general = load_general_config(base_dir)
    lark = LarkClient(os.getenv("LARK_WEBHOOK_URL"))
    return RunController(games, general, notifier=lark)


def main():
    ver = get_version_string()
    logging.info("========================================")
    logging.info(f"  Multi-Game Bot API  {ver}")
    logging.info("========================================")

    controller = build_controller()
    if not controller.games:
        logging.warning("[Runner] 沒有 enabled 的遊戲，程式結束")
        return

    app = create_app(controller)
    install_signal_handlers(controller)

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "3000"))
    logging.info(f"[API] 伺服器啟動於 http://{host}:{port}")
    logging.info(f"[API] 可用遊戲: {', '.join(controller.games)}")
    app.run(host=host, port=port, threaded=True, use_reloader=False)


if __name__ == "__main__":
    main()
