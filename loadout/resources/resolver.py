"""
技能资源解析：URI → ResourceContent

只读注册表，不修改；全文读取每次都重新读磁盘（不依赖解析结果），
其余资源类型依赖 SkillRecord.document。
"""

from __future__ import annotations

import asyncio

import structlog

from loadout.errors import ResourceNotFoundError, SkillNotParsedError, SkillNotRegisteredError
from loadout.resources.mime import MARKDOWN, JSON, code_block_mime_type, guess_mime_type
from loadout.resources.schemas import ResourceContent, ResourceDescriptor, SkillManifest
from loadout.resources.uri import (
    DEFAULT_SCHEME,
    TYPE_CODE,
    TYPE_CONTENT,
    TYPE_MANIFEST,
    TYPE_SECTION,
    ParsedSkillUri,
    build_skill_uri,
    parse_skill_uri,
)
from loadout.skills.discovery import SkillDiscovery
from loadout.skills.schemas import SKILL_SUBDIRS, HeadingEntry, ParsedDocument, SkillRecord

log = structlog.get_logger()


def extract_section(body: str, slug: str, outline: tuple[HeadingEntry, ...]) -> str | None:
    """
    按 slug 截取章节：从该标题行到下一个同级或更高级标题的前一行，
    没有后续标题时到正文末尾。结果去掉首尾空白；找不到 slug 返回 None。
    """
    entry = next((h for h in outline if h.slug == slug), None)
    if entry is None:
        return None

    lines = body.split("\n")
    start = entry.line - 1
    if start < 0 or start >= len(lines):
        return None

    end = len(lines)
    for other in outline:
        if other.line > entry.line and other.level <= entry.level:
            end = other.line - 1
            break

    return "\n".join(lines[start:end]).strip()


def create_manifest(document: ParsedDocument) -> SkillManifest:
    return SkillManifest.from_document(document)


class ResourceResolver:
    """把技能资源 URI 解析为具体内容"""

    def __init__(self, discovery: SkillDiscovery, scheme: str = DEFAULT_SCHEME) -> None:
        self._discovery = discovery
        self._scheme = scheme

    @property
    def scheme(self) -> str:
        return self._scheme

    def parse(self, uri: str) -> ParsedSkillUri:
        return parse_skill_uri(uri, self._scheme)

    def uri_for(self, name: str, *parts: str | int) -> str:
        return build_skill_uri(self._scheme, name, *parts)

    # ── 读取 ──

    async def resolve(self, uri: str) -> ResourceContent:
        """
        解析并读取一个资源。

        Raises:
            InvalidUriError: URI 形态不合法
            SkillNotRegisteredError: 技能不在注册表中
            SkillNotParsedError: 技能正文解析失败（全文读取除外）
            ResourceNotFoundError: 章节 / 代码块 / 文件不存在
        """
        parsed = self.parse(uri)
        record = self._discovery.get(parsed.name)
        if record is None:
            raise SkillNotRegisteredError(parsed.name)

        if parsed.type == TYPE_CONTENT:
            text = await self._read_manifest_text(record)
            return ResourceContent(uri=uri, mime_type=MARKDOWN, text=text)

        document = record.document
        if document is None:
            raise SkillNotParsedError(parsed.name)

        if parsed.type == TYPE_MANIFEST:
            return ResourceContent(
                uri=uri,
                mime_type=JSON,
                text=create_manifest(document).to_json(),
            )

        if parsed.type == TYPE_SECTION:
            section = extract_section(document.body, parsed.param, document.outline)
            if section is None:
                raise ResourceNotFoundError(f"Section not found: {parsed.param}")
            return ResourceContent(uri=uri, mime_type=MARKDOWN, text=section)

        if parsed.type == TYPE_CODE:
            block = document.code_blocks[self._code_index(parsed.param, len(document.code_blocks))]
            return ResourceContent(
                uri=uri,
                mime_type=code_block_mime_type(block.language),
                text=block.content,
            )

        # references / scripts / assets
        text, blob = await asyncio.to_thread(self._read_skill_file, record, parsed.type, parsed.param)
        return ResourceContent(uri=uri, mime_type=guess_mime_type(parsed.param), text=text, blob=blob)

    @staticmethod
    def _code_index(param: str, count: int) -> int:
        valid_range = f"0-{count - 1}" if count else "none"
        index = int(param) if param.isdecimal() else -1
        if index < 0 or index >= count:
            raise ResourceNotFoundError(
                f"Invalid code block index: {param}. Valid range: {valid_range}"
            )
        return index

    @staticmethod
    async def _read_manifest_text(record: SkillRecord) -> str:
        try:
            return await asyncio.to_thread(record.manifest_path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            log.warning("SKILL.md 读取失败", skill=record.name, path=str(record.manifest_path), error=str(e))
            raise ResourceNotFoundError(f"Skill file not readable: {record.manifest_path}") from e

    @staticmethod
    def _read_skill_file(record: SkillRecord, subdir: str, relative: str) -> tuple[str | None, bytes | None]:
        """读取子目录内文件（在线程中执行）；路径解析后必须仍在该子目录内"""
        not_found = ResourceNotFoundError(f"File not found: {subdir}/{relative}")

        base = (record.directory_path / subdir).resolve()
        target = (base / relative).resolve()
        if not target.is_relative_to(base) or not target.is_file():
            raise not_found

        try:
            data = target.read_bytes()
        except OSError as e:
            raise not_found from e

        try:
            return data.decode("utf-8"), None
        except UnicodeDecodeError:
            return None, data

    # ── 列表 ──

    def list_resources(self) -> list[ResourceDescriptor]:
        """当前注册表快照下的全部可读资源"""
        resources: list[ResourceDescriptor] = []
        for record in self._discovery.all():
            resources.extend(self._describe(record))
        return resources

    def _describe(self, record: SkillRecord) -> list[ResourceDescriptor]:
        name = record.name
        items = [
            ResourceDescriptor(
                uri=self.uri_for(name),
                name=f"{name} - Full Content",
                description=record.description,
                mime_type=MARKDOWN,
            ),
            ResourceDescriptor(
                uri=self.uri_for(name, TYPE_MANIFEST),
                name=f"{name} - Manifest",
                description=f"JSON manifest for {name} skill",
                mime_type=JSON,
            ),
        ]

        document = record.document
        if document is None:
            return items

        for heading in document.outline:
            items.append(ResourceDescriptor(
                uri=self.uri_for(name, TYPE_SECTION, heading.slug),
                name=f"{name} - Section: {heading.text}",
                description=f'Section "{heading.text}" from {name} skill',
                mime_type=MARKDOWN,
            ))

        for idx, block in enumerate(document.code_blocks):
            lang_info = f" ({block.language})" if block.language else ""
            items.append(ResourceDescriptor(
                uri=self.uri_for(name, TYPE_CODE, idx),
                name=f"{name} - Code Block {idx}{lang_info}",
                description=f"Code block {idx} from {name} skill at line {block.line}",
                mime_type=code_block_mime_type(block.language),
            ))

        for subdir in SKILL_SUBDIRS:
            label = subdir[:-1].capitalize()  # scripts → Script
            for filename in document.files.get(subdir):
                items.append(ResourceDescriptor(
                    uri=self.uri_for(name, subdir, filename),
                    name=f"{name} - {label}: {filename}",
                    description=f'{label} file "{filename}" from {name} skill',
                    mime_type=guess_mime_type(filename),
                ))
        return items