"""
工具抽象基类 + 标准化结果

BaseTool 强制约束：
1. name / description / params_model: 定义工具 Schema（Pydantic 生成，杜绝手写 dict 出错）
2. execute: 返回 ToolResult

ToolResult 标准化：
- status: "success" | "error"
- data: 工具特定的结果数据
- error: 错误描述（仅 status="error" 时有值）
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from loadout.config import get_settings


@dataclass
class ToolResult:
    """工具执行标准化结果"""

    status: str  # "success" | "error"
    data: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "success"

    def to_json(self) -> str:
        if self.status == "error":
            return json.dumps(
                {"status": "error", "error": self.error},
                ensure_ascii=False,
            )
        return json.dumps(
            {"status": "success", **self.data},
            ensure_ascii=False,
            indent=2,
        )

    @classmethod
    def success(cls, **data: Any) -> "ToolResult":
        """快捷构造成功结果"""
        return cls(status="success", data=data)

    @classmethod
    def fail(cls, error: str) -> "ToolResult":
        """快捷构造失败结果"""
        return cls(status="error", error=error)


class NoParams(BaseModel):
    """无参数工具共用的参数模型"""


class BaseTool(ABC):
    """工具抽象基类，所有工具必须继承"""

    @property
    @abstractmethod
    def name(self) -> str:
        """工具唯一名称"""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """工具描述（给调用方 Agent 看）"""
        ...

    @property
    @abstractmethod
    def params_model(self) -> type[BaseModel]:
        """参数 Pydantic Model，用于生成 inputSchema 和校验入参"""
        ...

    @abstractmethod
    async def execute(self, args: dict) -> ToolResult:
        """执行工具，返回标准化结果"""
        ...

    @property
    def timeout_ms(self) -> int:
        """单次执行超时（毫秒），默认取全局配置"""
        return get_settings().DEFAULT_TOOL_TIMEOUT_MS

    def parse_args(self, args: dict) -> BaseModel:
        """按 params_model 校验入参，失败抛 pydantic.ValidationError"""
        return self.params_model.model_validate(args or {})

    def schema(self) -> dict:
        """生成 {name, description, inputSchema} 格式的工具声明"""
        json_schema = self.params_model.model_json_schema()

        required = json_schema.get("required", [])

        # 移除 Pydantic 附加的 title 字段
        properties = {}
        for key, prop in json_schema.get("properties", {}).items():
            properties[key] = {k: v for k, v in prop.items() if k != "title"}

        input_schema: dict[str, Any] = {"type": "object", "properties": properties}
        if required:
            input_schema["required"] = required

        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": input_schema,
        }
