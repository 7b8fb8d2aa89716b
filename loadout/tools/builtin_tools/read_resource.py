"""
ReadResourceTool: 读取 loadout:// 资源

文本内容放 text；非 UTF-8 文件以 base64 放 blob。
"""

import base64

from pydantic import BaseModel, Field

from loadout.resources.resolver import ResourceResolver
from loadout.tools.base import BaseTool, ToolResult


class _Params(BaseModel):
    uri: str = Field(description="资源 URI，例：loadout://pdf-tools/section/usage")


class ReadResourceTool(BaseTool):

    def __init__(self, resolver: ResourceResolver) -> None:
        self._resolver = resolver

    @property
    def name(self) -> str:
        return "read_resource"

    @property
    def description(self) -> str:
        s = self._resolver.scheme
        return (
            "读取技能资源。支持的 URI：\n"
            f"  {s}://{{name}}                    SKILL.md 全文\n"
            f"  {s}://{{name}}/manifest           JSON 清单\n"
            f"  {s}://{{name}}/section/{{slug}}     单个章节\n"
            f"  {s}://{{name}}/code/{{index}}       第 N 个代码块（0 起）\n"
            f"  {s}://{{name}}/references/{{file}}  references/ scripts/ assets/ 下的文件"
        )

    @property
    def params_model(self) -> type[BaseModel]:
        return _Params

    async def execute(self, args: dict) -> ToolResult:
        params = self.parse_args(args)
        content = await self._resolver.resolve(params.uri)
        if content.text is not None:
            return ToolResult.success(uri=content.uri, mimeType=content.mime_type, text=content.text)
        return ToolResult.success(
            uri=content.uri,
            mimeType=content.mime_type,
            blob=base64.b64encode(content.blob or b"").decode("ascii"),
        )
