"""核心工具模組"""
from .browser import BrowserSession, current_url, wait_for_url_contains, type_slowly
from .utils import format_uptime, js_round, sleep

__all__ = [
    "BrowserSession",
    "current_url",
    "wait_for_url_contains",
    "type_slowly",
    "format_uptime",
    "js_round",
    "sleep",
]
