"""
InstallSkillTool: 把内置技能复制到某个 Agent 的技能目录

    install_skill(skill="pdf-tools", agent="cursor", global=True)
      → 复制 bundled_skills/pdf-tools 到 ~/.cursor/skills/pdf-tools

project 范围安装到 cwd 下，global 范围安装到用户主目录下；已存在的同名目录会被覆盖合并。
"""

import asyncio
import shutil
from pathlib import Path
from typing import Literal

import structlog
from pydantic import BaseModel, ConfigDict, Field

from loadout.config import AGENT_SKILL_DIRS
from loadout.tools.base import BaseTool, ToolResult

log = structlog.get_logger()


class _Params(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    skill: str = Field(description="要安装的内置技能名称")
    agent: Literal["claude", "cursor", "codex", "agents"] = Field(
        default="claude",
        description="目标 Agent，默认 claude",
    )
    is_global: bool = Field(
        default=False,
        alias="global",
        description="安装到用户主目录而不是项目目录，默认 false",
    )


def _list_bundled(bundled_dir: Path) -> list[str]:
    try:
        return sorted(e.name for e in bundled_dir.iterdir() if e.is_dir() and not e.name.startswith("."))
    except OSError:
        return []


class InstallSkillTool(BaseTool):

    def __init__(self, bundled_dir: Path, cwd: Path, home: Path | None) -> None:
        self._bundled_dir = bundled_dir
        self._cwd = cwd
        self._home = home

    @property
    def name(self) -> str:
        return "install_skill"

    @property
    def description(self) -> str:
        return "把内置技能安装到指定 Agent 的技能目录（项目级或用户级）"

    @property
    def params_model(self) -> type[BaseModel]:
        return _Params

    async def execute(self, args: dict) -> ToolResult:
        params = self.parse_args(args)

        # 技能名只能是单层目录名
        if params.skill in ("", ".", "..") or "/" in params.skill or "\\" in params.skill:
            return ToolResult.fail(f"Bundled skill not found: {params.skill}")

        source = self._bundled_dir / params.skill
        if not source.is_dir():
            available = _list_bundled(self._bundled_dir)
            if not available:
                return ToolResult.fail(
                    "No bundled skills available. This tool only installs skills bundled with the package."
                )
            return ToolResult.fail(
                f"Bundled skill not found: {params.skill}\nAvailable bundled skills: {', '.join(available)}"
            )

        if params.is_global and self._home is None:
            return ToolResult.fail("Cannot determine home directory for global install")
        base = self._home if params.is_global else self._cwd
        target = base / AGENT_SKILL_DIRS[params.agent] / params.skill

        try:
            await asyncio.to_thread(self._copy, source, target)
        except OSError as e:
            log.error("技能安装失败", skill=params.skill, target=str(target), error=str(e))
            return ToolResult.fail(f"Failed to install skill: {e}")

        log.info("技能已安装", skill=params.skill, agent=params.agent, target=str(target))
        return ToolResult.success(
            message=f"Installed {params.skill} to {params.agent}",
            path=str(target),
            scope="global" if params.is_global else "project",
        )

    @staticmethod
    def _copy(source: Path, target: Path) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copytree(source, target, dirs_exist_ok=True)
