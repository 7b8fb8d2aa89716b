"""
SKILL.md 解析器

    ---
    name: pdf-tools
    description: 处理 PDF 的脚本和参考文档
    license: MIT
    ---

    # 正文
    ...

- frontmatter：首个 --- 包围的块，yaml.safe_load 解析
- 正文：闭合 --- 的下一行开始；标题 / 代码块 / 链接从 markdown-it 的 token 流提取，
  行号为正文内的 1-based 行号（不计 frontmatter）

parse_skill_md() 是全函数：frontmatter 缺失或非法时 name/description 为空串，
整段文本作为正文，任何输入都不抛异常。
"""

from __future__ import annotations

import re
from typing import Any

import structlog
import yaml
from markdown_it import MarkdownIt
from markdown_it.token import Token

from loadout.errors import FrontmatterError
from loadout.skills.schemas import (
    CodeBlock,
    HeadingEntry,
    ParsedDocument,
    SkillFrontmatter,
    SkillLink,
)

log = structlog.get_logger()

_FRONTMATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)

# GitHub slug：去掉字母 / 数字 / _ / - / 空格以外的字符
_SLUG_STRIP_RE = re.compile(r"[^\w\- ]")

_INTERNAL_PREFIXES = ("references/", "scripts/", "assets/")

_markdown = MarkdownIt("commonmark").enable("table")


class Slugger:
    """
    生成文档内唯一的 slug：重复文本依次追加 -1、-2 …

    与 GitHub 的锚点规则一致，一个 Slugger 实例只用于一篇文档。
    """

    def __init__(self) -> None:
        self._occurrences: dict[str, int] = {}

    @staticmethod
    def base_slug(text: str) -> str:
        return _SLUG_STRIP_RE.sub("", text.lower()).replace(" ", "-")

    def slug(self, text: str) -> str:
        base = self.base_slug(text)
        result = base
        while result in self._occurrences:
            self._occurrences[base] += 1
            result = f"{base}-{self._occurrences[base]}"
        self._occurrences[result] = 0
        return result


def is_internal_href(href: str) -> bool:
    """链接是否指向技能自带文件（references/ scripts/ assets/，允许 ./ 前缀）"""
    return href.removeprefix("./").startswith(_INTERNAL_PREFIXES)


def _as_optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def split_frontmatter(text: str, strict: bool = False) -> tuple[SkillFrontmatter, str]:
    """
    拆分 frontmatter 与正文。

    Returns:
        (frontmatter, body)；frontmatter 缺失 / 未闭合 / YAML 非法 / 不是 mapping 时
        返回空 frontmatter，body 为原文
    Raises:
        FrontmatterError: strict=True 且分隔行完整，但 YAML 非法或不是 mapping
    """
    text = text.removeprefix("\ufeff")
    match = _FRONTMATTER_RE.match(text)
    if not match:
        return SkillFrontmatter(), text

    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        if strict:
            raise FrontmatterError(f"Invalid YAML frontmatter: {e}", cause=e) from e
        log.debug("SKILL.md frontmatter YAML 解析失败，按无 frontmatter 处理", error=str(e))
        return SkillFrontmatter(), text

    if data is None:
        data = {}
    if not isinstance(data, dict):
        if strict:
            raise FrontmatterError(f"Frontmatter must be a mapping, got {type(data).__name__}")
        log.debug("SKILL.md frontmatter 不是 mapping，按无 frontmatter 处理", type=type(data).__name__)
        return SkillFrontmatter(), text

    metadata = data.get("metadata")
    frontmatter = SkillFrontmatter(
        name=_as_optional_str(data.get("name")) or "",
        description=_as_optional_str(data.get("description")) or "",
        license=_as_optional_str(data.get("license")),
        version=_as_optional_str(data.get("version")),
        author=_as_optional_str(data.get("author")),
        metadata=metadata if isinstance(metadata, dict) else None,
    )
    return frontmatter, text[match.end():]


def _inline_text(children: list[Token] | None) -> str:
    """inline token 的纯文本（文本、行内代码、图片 alt）"""
    parts: list[str] = []
    for child in children or []:
        if child.type in ("text", "code_inline", "image"):
            parts.append(child.content)
        elif child.type == "softbreak":
            parts.append("\n")
    return "".join(parts)


def _line_of(token: Token) -> int:
    return token.map[0] + 1 if token.map else 0


def _extract_links(inline: Token) -> list[SkillLink]:
    links: list[SkillLink] = []
    children = inline.children or []
    idx = 0
    while idx < len(children):
        child = children[idx]
        if child.type != "link_open":
            idx += 1
            continue

        href = str(child.attrGet("href") or "")
        # 收集到 link_close 为止的文本
        end = idx + 1
        while end < len(children) and children[end].type != "link_close":
            end += 1
        text = _inline_text(children[idx + 1:end])
        links.append(SkillLink(text=text, href=href, is_internal=is_internal_href(href)))
        idx = end + 1
    return links


def analyze_body(
    body: str,
) -> tuple[tuple[HeadingEntry, ...], tuple[CodeBlock, ...], tuple[SkillLink, ...]]:
    """从正文提取目录、代码块、链接，均保持文档顺序"""
    tokens = _markdown.parse(body)
    slugger = Slugger()

    outline: list[HeadingEntry] = []
    code_blocks: list[CodeBlock] = []
    links: list[SkillLink] = []

    for idx, token in enumerate(tokens):
        if token.type == "heading_open":
            inline = tokens[idx + 1] if idx + 1 < len(tokens) else None
            text = _inline_text(inline.children) if inline is not None else ""
            outline.append(HeadingEntry(
                level=int(token.tag[1:]),
                text=text,
                slug=slugger.slug(text),
                line=_line_of(token),
            ))
        elif token.type in ("fence", "code_block"):
            info = token.info.strip() if token.type == "fence" else ""
            code_blocks.append(CodeBlock(
                language=info.split()[0] if info else None,
                line=_line_of(token),
                content=token.content.removesuffix("\n"),
            ))
        elif token.type == "inline":
            links.extend(_extract_links(token))

    return tuple(outline), tuple(code_blocks), tuple(links)


def parse_skill_md(text: str) -> ParsedDocument:
    """解析 SKILL.md 全文。全函数，不抛异常；files 由 FileLister 另行填充"""
    frontmatter, body = split_frontmatter(text)
    try:
        outline, code_blocks, links = analyze_body(body)
    except Exception as e:
        log.warning("SKILL.md 正文分析失败，返回空结构", error=str(e))
        outline, code_blocks, links = (), (), ()

    return ParsedDocument(
        frontmatter=frontmatter,
        body=body,
        outline=outline,
        code_blocks=code_blocks,
        links=links,
    )
