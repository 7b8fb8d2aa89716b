"""SearchSkillsTool: 按名称 / 描述模糊搜索技能"""

from pydantic import BaseModel, Field

from loadout.skills.discovery import SkillDiscovery
from loadout.tools.base import BaseTool, ToolResult
from loadout.tools.builtin_tools.list_skills import skill_summary


class _Params(BaseModel):
    query: str = Field(description="搜索关键词，匹配技能名称和描述（不区分大小写）")


class SearchSkillsTool(BaseTool):

    def __init__(self, discovery: SkillDiscovery) -> None:
        self._discovery = discovery

    @property
    def name(self) -> str:
        return "search_skills"

    @property
    def description(self) -> str:
        return "按名称或描述搜索技能"

    @property
    def params_model(self) -> type[BaseModel]:
        return _Params

    async def execute(self, args: dict) -> ToolResult:
        params = self.parse_args(args)
        skills = [skill_summary(r) for r in self._discovery.search(params.query)]
        return ToolResult.success(skills=skills, count=len(skills))
