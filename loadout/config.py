"""
全局配置模块：通过 pydantic-settings 读取 .env / 环境变量

搜索路径（search roots）在启动时由 build_search_paths() 一次性构建，
再显式注入 SkillDiscovery；核心逻辑内部不读取 HOME / cwd。
"""

import os
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# 各 Agent 约定的技能目录（相对 cwd 或 home）
AGENT_SKILL_DIRS: dict[str, str] = {
    "claude": ".claude/skills",
    "cursor": ".cursor/skills",
    "codex": ".codex/skills",
    "agents": ".agents/skills",
}

_PACKAGE_ROOT = Path(__file__).resolve().parent


class Settings(BaseSettings):
    """应用全局配置，从 .env 文件 / 环境变量加载"""

    model_config = SettingsConfigDict(
        env_file=_PACKAGE_ROOT / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── 应用 ──
    ENV: str = "development"  # development | production
    APP_NAME: str = "loadout"
    LOG_LEVEL: str = "INFO"

    # ── 资源 URI ──
    URI_SCHEME: str = "loadout"

    # ── 技能目录 ──
    BUNDLED_SKILLS_DIR: str | None = None  # 默认 <package>/bundled_skills
    EXTRA_SKILLS_DIRS: list[str] = []  # 调用方追加的目录，优先级最高

    # ── 热加载 ──
    WATCH: bool = False
    WATCH_DEBOUNCE_MS: int = 100  # 同一 SKILL.md 连续写入的合并窗口

    # ── 脚本执行 ──
    ALLOW_SCRIPTS: bool = False
    SCRIPT_TIMEOUT_MS: int = 30_000
    SCRIPT_KILL_GRACE_MS: int = 5_000  # SIGTERM 之后等待多久再 SIGKILL

    # ── 工具 ──
    DEFAULT_TOOL_TIMEOUT_MS: int = 60_000  # ToolRegistry 兜底超时

    @field_validator("URI_SCHEME")
    @classmethod
    def _strip_scheme_suffix(cls, v: str) -> str:
        """允许写成 loadout:// 或 loadout，统一为裸 scheme"""
        scheme = v.removesuffix("://").strip()
        if not scheme:
            raise ValueError("URI_SCHEME 不能为空")
        return scheme

    @field_validator("WATCH_DEBOUNCE_MS", "SCRIPT_TIMEOUT_MS", "SCRIPT_KILL_GRACE_MS", "DEFAULT_TOOL_TIMEOUT_MS")
    @classmethod
    def _non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("时间配置不能为负数")
        return v

    @property
    def bundled_skills_dir(self) -> Path:
        if self.BUNDLED_SKILLS_DIR:
            return Path(self.BUNDLED_SKILLS_DIR).expanduser()
        return _PACKAGE_ROOT / "bundled_skills"


@lru_cache
def get_settings() -> Settings:
    """单例获取配置（带缓存）"""
    return Settings()


def default_home() -> Path | None:
    """读取进程的用户主目录；仅在启动时调用一次"""
    home = os.environ.get("HOME") or os.environ.get("USERPROFILE")
    return Path(home) if home else None


def build_search_paths(
    settings: Settings,
    cwd: Path | None = None,
    home: Path | None = None,
) -> list[Path]:
    """
    构建技能搜索路径，按优先级从低到高排列（后扫描的同名技能覆盖先扫描的）。

    顺序：
    1. 内置技能（loadout/bundled_skills）
    2. 项目目录：cwd/skills + cwd/.{claude,cursor,codex,agents}/skills
    3. 用户目录：home/.{claude,cursor,codex,agents}/skills（home 未知时跳过）
    4. EXTRA_SKILLS_DIRS
    """
    cwd = cwd or Path.cwd()

    paths = [settings.bundled_skills_dir, cwd / "skills"]
    paths.extend(cwd / rel for rel in AGENT_SKILL_DIRS.values())
    if home is not None:
        paths.extend(home / rel for rel in AGENT_SKILL_DIRS.values())
    paths.extend(Path(p).expanduser() for p in settings.EXTRA_SKILLS_DIRS)
    return paths
