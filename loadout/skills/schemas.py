"""
技能数据模型

SkillRecord 是注册表中的条目，每次重新解析都整体替换（不做局部修改），
因此全部使用 frozen dataclass，解析器返回的 ParsedDocument 在发布后同样只读。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

# 技能目录下三个固定子目录
SUBDIR_SCRIPTS = "scripts"
SUBDIR_REFERENCES = "references"
SUBDIR_ASSETS = "assets"
SKILL_SUBDIRS = (SUBDIR_SCRIPTS, SUBDIR_REFERENCES, SUBDIR_ASSETS)

MANIFEST_FILENAME = "SKILL.md"


@dataclass(frozen=True)
class SkillFrontmatter:
    """SKILL.md 头部的 YAML frontmatter"""
    name: str = ""
    description: str = ""
    license: str | None = None
    version: str | None = None
    author: str | None = None
    metadata: dict[str, Any] | None = None


@dataclass(frozen=True)
class HeadingEntry:
    """目录项：level 1-6，line 为正文内 1-based 行号"""
    level: int
    text: str
    slug: str
    line: int


@dataclass(frozen=True)
class CodeBlock:
    language: str | None
    line: int
    content: str


@dataclass(frozen=True)
class SkillLink:
    text: str
    href: str
    is_internal: bool  # 指向 references/ scripts/ assets/ 的相对链接


@dataclass(frozen=True)
class SkillFiles:
    """三个子目录下的文件名（不含路径、不含点开头的隐藏项）"""
    scripts: tuple[str, ...] = ()
    references: tuple[str, ...] = ()
    assets: tuple[str, ...] = ()

    def get(self, subdir: str) -> tuple[str, ...]:
        return getattr(self, subdir)

    def to_dict(self) -> dict[str, list[str]]:
        return {
            SUBDIR_SCRIPTS: list(self.scripts),
            SUBDIR_REFERENCES: list(self.references),
            SUBDIR_ASSETS: list(self.assets),
        }


@dataclass(frozen=True)
class ParsedDocument:
    """一个 SKILL.md 的解析结果"""
    frontmatter: SkillFrontmatter
    body: str
    outline: tuple[HeadingEntry, ...] = ()
    code_blocks: tuple[CodeBlock, ...] = ()
    links: tuple[SkillLink, ...] = ()
    files: SkillFiles = field(default_factory=SkillFiles)


@dataclass(frozen=True)
class SkillRecord:
    """
    注册表条目。

    document 为 None 表示 SKILL.md 的 frontmatter 可读但正文分析失败，
    此时除全文读取外的所有资源类型都不可用。
    """
    name: str
    description: str
    directory_path: Path
    manifest_path: Path
    document: ParsedDocument | None = None

    @property
    def scripts_dir(self) -> Path:
        return self.directory_path / SUBDIR_SCRIPTS
