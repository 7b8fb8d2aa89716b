"""
技能发现事件

SkillDiscovery 只产出结构化事件，不负责格式化日志；
日志落地由 observability.discovery_logger 订阅完成。
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar, Union

from loadout.skills.schemas import SkillRecord


@dataclass(frozen=True)
class SkillDiscovered:
    kind: ClassVar[str] = "discovered"
    record: SkillRecord


@dataclass(frozen=True)
class SkillUpdated:
    """同名技能被整体替换；previous 可能来自另一个搜索目录"""
    kind: ClassVar[str] = "updated"
    record: SkillRecord
    previous: SkillRecord


@dataclass(frozen=True)
class SkillRemoved:
    kind: ClassVar[str] = "removed"
    name: str
    directory_path: Path


@dataclass(frozen=True)
class DiscoveryError:
    """单个候选技能的 I/O 或解析错误，扫描 / 监听继续进行"""
    kind: ClassVar[str] = "error"
    cause: Exception
    path: Path | None = None


DiscoveryEvent = Union[SkillDiscovered, SkillUpdated, SkillRemoved, DiscoveryError]

DiscoveryListener = Callable[[DiscoveryEvent], None]
