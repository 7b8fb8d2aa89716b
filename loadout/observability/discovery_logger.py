"""
技能发现事件 → 结构化日志

SkillDiscovery 本身只发事件，由这里订阅后落日志，
测试或嵌入方可以不挂这个订阅方而自行处理事件。
"""

import structlog

from loadout.skills.discovery import SkillDiscovery
from loadout.skills.events import (
    DiscoveryError,
    DiscoveryEvent,
    SkillDiscovered,
    SkillRemoved,
    SkillUpdated,
)

log = structlog.get_logger()


def log_discovery_event(event: DiscoveryEvent) -> None:
    if isinstance(event, SkillDiscovered):
        log.info(
            "发现技能",
            skill=event.record.name,
            path=str(event.record.directory_path),
            parsed=event.record.document is not None,
        )
    elif isinstance(event, SkillUpdated):
        log.info(
            "技能已更新",
            skill=event.record.name,
            path=str(event.record.directory_path),
            previous_path=str(event.previous.directory_path),
        )
    elif isinstance(event, SkillRemoved):
        log.info("技能已移除", skill=event.name, path=str(event.directory_path))
    elif isinstance(event, DiscoveryError):
        log.error(
            "技能加载失败",
            path=str(event.path) if event.path is not None else None,
            error=str(event.cause),
            error_type=type(event.cause).__name__,
        )


def attach_discovery_logger(discovery: SkillDiscovery) -> None:
    """给 SkillDiscovery 挂上日志订阅方"""
    discovery.add_listener(log_discovery_event)
