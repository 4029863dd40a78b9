"""通知模組"""
from .lark import LarkClient

__all__ = ["LarkClient"]
