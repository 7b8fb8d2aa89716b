"""
技能资源层：loadout:// URI 解析与读取
"""

from loadout.resources.resolver import ResourceResolver, create_manifest, extract_section
from loadout.resources.schemas import ResourceContent, ResourceDescriptor, SkillManifest
from loadout.resources.uri import ParsedSkillUri, build_skill_uri, parse_skill_uri

__all__ = [
    "ParsedSkillUri",
    "ResourceContent",
    "ResourceDescriptor",
    "ResourceResolver",
    "SkillManifest",
    "build_skill_uri",
    "create_manifest",
    "extract_section",
    "parse_skill_uri",
]
