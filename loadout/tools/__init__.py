"""
工具层：BaseTool 抽象基类 + ToolRegistry 注册中心 + 内置技能工具

供外层协议（如 MCP stdio 服务）直接调用。
"""

from loadout.tools.base import BaseTool, ToolResult
from loadout.tools.registry import ToolRegistry

__all__ = ["BaseTool", "ToolResult", "ToolRegistry"]
