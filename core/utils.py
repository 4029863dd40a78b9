"""通用工具函數"""
import asyncio
import math


def js_round(value: float) -> int:
    """四捨五入（0.5 一律進位），與前端 Math.round 一致；內建 round 是銀行家捨入"""
    return int(math.floor(value + 0.5))


def format_uptime(ms: float) -> str:
    """將毫秒轉為 '1h 2m 3s' / '2m 3s' / '3s'"""
    seconds = int(ms // 1000)
    minutes = seconds // 60
    hours = minutes // 60

    if hours > 0:
        return f"{hours}h {minutes % 60}m {seconds % 60}s"
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"


async def sleep(seconds: float):
    """asyncio.sleep，但 0 或負數直接讓出事件迴圈"""
    await asyncio.sleep(max(0.0, seconds))
