"""ListSkillsTool: 列出注册表中的全部技能"""

from pydantic import BaseModel

from loadout.skills.discovery import SkillDiscovery
from loadout.skills.schemas import SkillRecord
from loadout.tools.base import BaseTool, NoParams, ToolResult


def skill_summary(record: SkillRecord) -> dict:
    return {
        "name": record.name,
        "description": record.description,
        "path": str(record.directory_path),
    }


class ListSkillsTool(BaseTool):

    def __init__(self, discovery: SkillDiscovery) -> None:
        self._discovery = discovery

    @property
    def name(self) -> str:
        return "list_skills"

    @property
    def description(self) -> str:
        return "列出所有技能目录中已发现的技能（name / description / path）"

    @property
    def params_model(self) -> type[BaseModel]:
        return NoParams

    async def execute(self, args: dict) -> ToolResult:
        skills = [skill_summary(r) for r in self._discovery.all()]
        return ToolResult.success(skills=skills, count=len(skills))
