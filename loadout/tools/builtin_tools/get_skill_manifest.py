"""GetSkillManifestTool: 返回技能的结构化清单（目录 / 代码块预览 / 链接 / 文件）"""

from pydantic import BaseModel, Field

from loadout.errors import SkillNotParsedError, SkillNotRegisteredError
from loadout.resources.resolver import create_manifest
from loadout.skills.discovery import SkillDiscovery
from loadout.tools.base import BaseTool, ToolResult


class _Params(BaseModel):
    name: str = Field(description="技能名称")


class GetSkillManifestTool(BaseTool):

    def __init__(self, discovery: SkillDiscovery) -> None:
        self._discovery = discovery

    @property
    def name(self) -> str:
        return "get_skill_manifest"

    @property
    def description(self) -> str:
        return "获取技能的完整清单：frontmatter、章节目录、代码块预览、链接和文件列表"

    @property
    def params_model(self) -> type[BaseModel]:
        return _Params

    async def execute(self, args: dict) -> ToolResult:
        params = self.parse_args(args)
        record = self._discovery.get(params.name)
        if record is None:
            raise SkillNotRegisteredError(params.name)
        if record.document is None:
            raise SkillNotParsedError(params.name)
        return ToolResult.success(**create_manifest(record.document).to_dict())
