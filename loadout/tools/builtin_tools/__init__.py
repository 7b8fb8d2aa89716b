"""
内置工具集：自动注册所有内置工具到 ToolRegistry

使用方式：
    from loadout.tools.builtin_tools import create_builtin_registry
    registry = create_builtin_registry(discovery, resolver, sandbox)
"""

from pathlib import Path

from loadout.config import Settings, get_settings
from loadout.execution.sandbox import ScriptSandbox
from loadout.resources.resolver import ResourceResolver
from loadout.skills.discovery import SkillDiscovery
from loadout.tools.builtin_tools.get_skill_manifest import GetSkillManifestTool
from loadout.tools.builtin_tools.install_skill import InstallSkillTool
from loadout.tools.builtin_tools.list_skills import ListSkillsTool
from loadout.tools.builtin_tools.read_resource import ReadResourceTool
from loadout.tools.builtin_tools.run_skill_script import RunSkillScriptTool
from loadout.tools.builtin_tools.search_skills import SearchSkillsTool
from loadout.tools.registry import ToolRegistry


def create_builtin_registry(
    discovery: SkillDiscovery,
    resolver: ResourceResolver,
    sandbox: ScriptSandbox,
    settings: Settings | None = None,
    cwd: Path | None = None,
    home: Path | None = None,
) -> ToolRegistry:
    """创建并注册所有内置工具的 Registry 实例"""
    settings = settings or get_settings()
    registry = ToolRegistry()

    registry.register(ListSkillsTool(discovery))
    registry.register(SearchSkillsTool(discovery))
    registry.register(GetSkillManifestTool(discovery))
    registry.register(ReadResourceTool(resolver))

    # 脚本执行默认关闭，工具仍注册，调用时返回明确的错误提示
    registry.register(RunSkillScriptTool(
        sandbox,
        enabled=settings.ALLOW_SCRIPTS,
        script_timeout_ms=settings.SCRIPT_TIMEOUT_MS,
        kill_grace_ms=settings.SCRIPT_KILL_GRACE_MS,
    ))
    registry.register(InstallSkillTool(
        bundled_dir=settings.bundled_skills_dir,
        cwd=cwd or Path.cwd(),
        home=home,
    ))

    return registry
