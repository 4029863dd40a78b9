"""
Multi-Game Bot 版本資訊

版本規則沿用語意化版本（MAJOR.MINOR.PATCH）。
/api 回應、啟動 banner 與 Run 結束報告都從這裡取值，發版時只改此檔。
"""

__version__ = "1.0.0"
__version_name__ = "HTTP 控制版"

VERSION_TUPLE = tuple(int(part) for part in __version__.split("."))


def get_version_string() -> str:
    """例如 'v1.0.0 (HTTP 控制版)'"""
    return f"v{__version__} ({__version_name__})"


def get_version_info() -> dict:
    major, minor, patch = VERSION_TUPLE
    return {
        "version": __version__,
        "name": __version_name__,
        "major": major,
        "minor": minor,
        "patch": patch,
        "display": get_version_string(),
    }
