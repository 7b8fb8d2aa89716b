"""
技能发现与注册表

技能 = 搜索目录下的一个子目录 + SKILL.md，可选 scripts/ references/ assets/：
- parser：SKILL.md → ParsedDocument（frontmatter、目录、代码块、链接）
- files：三个固定子目录的文件清单
- discovery：多目录扫描 + 文件监听 + 事件，同名技能后加载的覆盖先加载的
"""

from loadout.skills.discovery import SkillDiscovery
from loadout.skills.events import (
    DiscoveryError,
    DiscoveryEvent,
    DiscoveryListener,
    SkillDiscovered,
    SkillRemoved,
    SkillUpdated,
)
from loadout.skills.files import list_skill_files
from loadout.skills.parser import analyze_body, parse_skill_md, split_frontmatter
from loadout.skills.schemas import ParsedDocument, SkillFiles, SkillFrontmatter, SkillRecord

__all__ = [
    "DiscoveryError",
    "DiscoveryEvent",
    "DiscoveryListener",
    "ParsedDocument",
    "SkillDiscovered",
    "SkillDiscovery",
    "SkillFiles",
    "SkillFrontmatter",
    "SkillRecord",
    "SkillRemoved",
    "SkillUpdated",
    "analyze_body",
    "list_skill_files",
    "parse_skill_md",
    "split_frontmatter",
]
