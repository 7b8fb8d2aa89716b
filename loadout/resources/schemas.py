"""
资源层数据结构

SkillManifest 的 JSON 字段名沿用对外约定的 camelCase（codeBlocks / isInternal），
Python 侧用 snake_case + alias。
"""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from loadout.skills.schemas import ParsedDocument

# manifest 中代码块预览的最大字符数
PREVIEW_LENGTH = 100

# 值为空时不出现在 manifest JSON 里的可选字段
_OPTIONAL_MANIFEST_KEYS = ("license", "version", "author", "metadata")


class TocEntry(BaseModel):
    level: int
    text: str
    slug: str
    line: int


class CodeBlockPreview(BaseModel):
    lang: str | None
    line: int
    preview: str  # content[:PREVIEW_LENGTH]


class ManifestLink(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str
    href: str
    is_internal: bool = Field(alias="isInternal")


class ManifestFiles(BaseModel):
    scripts: list[str] = Field(default_factory=list)
    references: list[str] = Field(default_factory=list)
    assets: list[str] = Field(default_factory=list)


class SkillManifest(BaseModel):
    """loadout://{name}/manifest 的内容"""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: str
    license: str | None = None
    version: str | None = None
    author: str | None = None
    metadata: dict[str, Any] | None = None
    toc: list[TocEntry] = Field(default_factory=list)
    code_blocks: list[CodeBlockPreview] = Field(default_factory=list, alias="codeBlocks")
    links: list[ManifestLink] = Field(default_factory=list)
    files: ManifestFiles = Field(default_factory=ManifestFiles)

    @classmethod
    def from_document(cls, document: ParsedDocument) -> "SkillManifest":
        fm = document.frontmatter
        return cls(
            name=fm.name,
            description=fm.description,
            license=fm.license,
            version=fm.version,
            author=fm.author,
            metadata=fm.metadata,
            toc=[
                TocEntry(level=h.level, text=h.text, slug=h.slug, line=h.line)
                for h in document.outline
            ],
            code_blocks=[
                CodeBlockPreview(lang=b.language, line=b.line, preview=b.content[:PREVIEW_LENGTH])
                for b in document.code_blocks
            ],
            links=[
                ManifestLink(text=link.text, href=link.href, is_internal=link.is_internal)
                for link in document.links
            ],
            files=ManifestFiles(**document.files.to_dict()),
        )

    def to_dict(self) -> dict[str, Any]:
        data = self.model_dump(by_alias=True)
        for key in _OPTIONAL_MANIFEST_KEYS:
            if data.get(key) is None:
                data.pop(key, None)
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2)


class ResourceContent(BaseModel):
    """一次资源读取的结果：文本内容放 text，非 UTF-8 文件放 blob"""

    uri: str
    mime_type: str
    text: str | None = None
    blob: bytes | None = None


class ResourceDescriptor(BaseModel):
    """资源列表中的一项"""

    uri: str
    name: str
    description: str = ""
    mime_type: str
