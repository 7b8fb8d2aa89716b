"""
loadout 应用入口

    async with lifespan() as app:
        app.discovery.all()
        await app.resolver.resolve("loadout://pdf-tools/manifest")
        await app.tools.execute("list_skills", {})

外层协议（MCP stdio 等）只需要在 lifespan 内调用 resolver / sandbox / tools。
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

import structlog

from loadout.config import Settings, build_search_paths, default_home, get_settings
from loadout.execution.sandbox import ScriptSandbox
from loadout.observability.discovery_logger import attach_discovery_logger
from loadout.observability.logging_config import setup_logging
from loadout.resources.resolver import ResourceResolver
from loadout.skills.discovery import SkillDiscovery
from loadout.tools.builtin_tools import create_builtin_registry
from loadout.tools.registry import ToolRegistry

log = structlog.get_logger()


@dataclass
class LoadoutApp:
    """一次运行期间共享的组件"""

    settings: Settings
    discovery: SkillDiscovery
    resolver: ResourceResolver
    sandbox: ScriptSandbox
    tools: ToolRegistry


def create_app(
    settings: Settings | None = None,
    cwd: Path | None = None,
    home: Path | None = None,
) -> LoadoutApp:
    """组装组件（不做 I/O）；搜索路径在这里一次性构建"""
    settings = settings or get_settings()
    cwd = cwd or Path.cwd()
    if home is None:
        home = default_home()

    discovery = SkillDiscovery(
        build_search_paths(settings, cwd=cwd, home=home),
        debounce_ms=settings.WATCH_DEBOUNCE_MS,
    )
    resolver = ResourceResolver(discovery, scheme=settings.URI_SCHEME)
    sandbox = ScriptSandbox(
        discovery,
        default_timeout_s=settings.SCRIPT_TIMEOUT_MS / 1000,
        kill_grace_s=settings.SCRIPT_KILL_GRACE_MS / 1000,
    )
    tools = create_builtin_registry(discovery, resolver, sandbox, settings=settings, cwd=cwd, home=home)
    return LoadoutApp(
        settings=settings,
        discovery=discovery,
        resolver=resolver,
        sandbox=sandbox,
        tools=tools,
    )


@asynccontextmanager
async def lifespan(
    settings: Settings | None = None,
    cwd: Path | None = None,
    home: Path | None = None,
) -> AsyncIterator[LoadoutApp]:
    """应用生命周期：启动时扫描技能目录（可选开启监听），退出时关闭监听"""
    settings = settings or get_settings()
    setup_logging(env=settings.ENV, level=settings.LOG_LEVEL)
    log.info("应用启动", env=settings.ENV, app=settings.APP_NAME)

    app = create_app(settings, cwd=cwd, home=home)
    attach_discovery_logger(app.discovery)

    await app.discovery.scan()
    log.info(
        "技能扫描完成",
        count=app.discovery.skill_count,
        search_paths=[str(p) for p in app.discovery.search_paths],
    )

    if settings.WATCH:
        app.discovery.watch()
        log.info("技能目录监听已开启", debounce_ms=settings.WATCH_DEBOUNCE_MS)

    try:
        yield app
    finally:
        await app.discovery.close()
        log.info("应用关闭，资源已释放")
