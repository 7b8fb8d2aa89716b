"""
技能目录文件清单：scripts/ references/ assets/

目录不存在、不是目录或不可读时该类别返回空列表，从不抛异常。
"""

from pathlib import Path

import structlog

from loadout.skills.schemas import SKILL_SUBDIRS, SkillFiles

log = structlog.get_logger()


def _list_subdir(subdir: Path) -> tuple[str, ...]:
    try:
        if not subdir.is_dir():
            return ()
        names = {entry.name for entry in subdir.iterdir() if not entry.name.startswith(".")}
    except OSError as e:
        log.debug("技能子目录不可读，按空目录处理", path=str(subdir), error=str(e))
        return ()
    return tuple(sorted(names))


def list_skill_files(skill_dir: Path) -> SkillFiles:
    """列出技能目录三个固定子目录的直接子项（文件或目录名）"""
    return SkillFiles(**{name: _list_subdir(skill_dir / name) for name in SKILL_SUBDIRS})
