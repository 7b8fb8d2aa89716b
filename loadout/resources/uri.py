"""
技能资源 URI

    loadout://{name}                       SKILL.md 全文
    loadout://{name}/manifest              JSON 清单
    loadout://{name}/section/{slug}        单个章节
    loadout://{name}/code/{index}          第 N 个代码块（0 起）
    loadout://{name}/references/{path...}  子目录文件，允许多级路径
    loadout://{name}/scripts/{path...}
    loadout://{name}/assets/{path...}

按 / 切分后丢弃空段，所以 loadout://foo//manifest 与 loadout://foo/manifest 等价。
"""

from dataclasses import dataclass

from loadout.errors import InvalidUriError
from loadout.skills.schemas import SKILL_SUBDIRS

DEFAULT_SCHEME = "loadout"

TYPE_CONTENT = "content"
TYPE_MANIFEST = "manifest"
TYPE_SECTION = "section"
TYPE_CODE = "code"


@dataclass(frozen=True)
class ParsedSkillUri:
    name: str
    type: str  # content | manifest | section | code | references | scripts | assets
    param: str | None = None  # 章节 slug / 代码块下标 / 子目录内相对路径


def parse_skill_uri(uri: str, scheme: str = DEFAULT_SCHEME) -> ParsedSkillUri:
    """
    解析技能资源 URI。

    Raises:
        InvalidUriError: scheme 不符、缺少技能名、未知资源类型、参数个数不对、
                         文件路径中出现 . / .. 段
    """
    prefix = f"{scheme}://"
    if not uri.startswith(prefix):
        raise InvalidUriError(uri, f"expected {prefix} scheme")

    segments = [s for s in uri[len(prefix):].split("/") if s]
    if not segments:
        raise InvalidUriError(uri, "missing skill name")

    name, rest = segments[0], segments[1:]
    if not rest:
        return ParsedSkillUri(name=name, type=TYPE_CONTENT)

    kind, params = rest[0], rest[1:]

    if kind == TYPE_MANIFEST and not params:
        return ParsedSkillUri(name=name, type=TYPE_MANIFEST)

    if kind in (TYPE_SECTION, TYPE_CODE) and len(params) == 1:
        return ParsedSkillUri(name=name, type=kind, param=params[0])

    if kind in SKILL_SUBDIRS and params:
        if any(p in (".", "..") for p in params):
            raise InvalidUriError(uri, "relative path segments are not allowed")
        return ParsedSkillUri(name=name, type=kind, param="/".join(params))

    raise InvalidUriError(uri)


def build_skill_uri(scheme: str, name: str, *parts: str | int) -> str:
    """拼接资源 URI：build_skill_uri("loadout", "pdf", "code", 0) → loadout://pdf/code/0"""
    return "/".join([f"{scheme}://{name}", *(str(p) for p in parts)])
