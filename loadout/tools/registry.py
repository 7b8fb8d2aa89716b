"""
工具注册中心：统一管理所有工具的注册、Schema 获取和执行分发

execute 外层包 asyncio.wait_for 兜底超时；工具内部应自行管理更短的超时
（例如脚本执行自带 SIGTERM / SIGKILL 升级）。
"""

import asyncio

import structlog
from pydantic import ValidationError

from loadout.errors import LoadoutError
from loadout.tools.base import BaseTool, ToolResult

log = structlog.get_logger()


class ToolRegistry:
    """工具注册中心"""

    def __init__(self):
        self._tools: dict[str, BaseTool] = {}

    def register(self, tool: BaseTool) -> None:
        """注册一个工具实例"""
        self._tools[tool.name] = tool
        log.debug("工具已注册", tool=tool.name, timeout_ms=tool.timeout_ms)

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    def get(self, name: str) -> BaseTool | None:
        return self._tools.get(name)

    def get_all_schemas(self) -> list[dict]:
        return [tool.schema() for tool in self._tools.values()]

    async def call(self, name: str, arguments: dict) -> ToolResult:
        """
        执行工具，返回 ToolResult；任何失败都转换为 ToolResult.fail。

        - 未知工具 / 参数校验失败 / LoadoutError：直接转为错误结果
        - 超时：Registry 兜底，正常情况下不应触发
        - CancelledError：系统级中断信号，向上传播
        """
        tool = self._tools.get(name)
        if not tool:
            return ToolResult.fail(f"未知工具: {name}")

        try:
            return await asyncio.wait_for(
                tool.execute(arguments or {}),
                timeout=tool.timeout_ms / 1000,
            )
        except asyncio.TimeoutError:
            log.warning("工具执行超时（Registry 兜底）", tool=name, timeout_ms=tool.timeout_ms)
            return ToolResult.fail(f"工具 {name} 执行超时（{tool.timeout_ms}ms）")
        except asyncio.CancelledError:
            log.warning("工具执行被取消", tool=name)
            raise
        except ValidationError as e:
            return ToolResult.fail(f"Invalid input: {e}")
        except LoadoutError as e:
            log.info("工具调用失败", tool=name, error=e.message)
            return ToolResult.fail(e.message)
        except Exception as e:
            log.error("工具执行异常", tool=name, error=str(e), exc_info=True)
            return ToolResult.fail(f"工具执行异常: {e}")

    async def execute(self, name: str, arguments: dict) -> str:
        """执行工具，返回 JSON 字符串（{"status": "success", ...} / {"status": "error", "error": ...}）"""
        result = await self.call(name, arguments)
        return result.to_json()

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools.keys())

    @property
    def tool_count(self) -> int:
        return len(self._tools)
