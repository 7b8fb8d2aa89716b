"""
技能发现与注册表

SkillDiscovery 维护内存注册表（name → SkillRecord）：
- scan()：按优先级从低到高遍历搜索目录，同名技能后扫描的覆盖先扫描的
- watch()：后台监听各搜索目录下的 */SKILL.md，增删改实时同步到注册表
- close()：停止监听，取消所有未触发的防抖计时器

并发模型（单写者）：
- 所有写操作（扫描写入、监听触发的写入 / 删除）在同一把 asyncio.Lock 下执行，
  每次写入都发布一个新的 dict（copy-on-write）
- 读操作（get / all / search、资源解析）直接拿当前 dict 引用，天然是不可变快照，无需加锁
- 文件读取与解析走 asyncio.to_thread，扫描过程中不阻塞并发的资源读取

监听防抖：每个 SKILL.md 路径一个计时器任务，窗口内的新事件取消旧计时器重新计时；
计时结束时以磁盘当前状态为准：文件存在则重新解析写入，不存在则删除对应条目。

缺失的搜索目录：非递归监听其最近的已存在上级目录，路径上出现新目录时
重新计算监听目标；新出现的搜索目录先补扫一次，再纳入监听。
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from pathlib import Path
from stat import S_ISREG

import structlog
from watchfiles import Change, awatch

from loadout.skills.events import (
    DiscoveryError,
    DiscoveryEvent,
    DiscoveryListener,
    SkillDiscovered,
    SkillRemoved,
    SkillUpdated,
)
from loadout.skills.files import list_skill_files
from loadout.skills.parser import analyze_body, split_frontmatter
from loadout.skills.schemas import MANIFEST_FILENAME, ParsedDocument, SkillRecord

log = structlog.get_logger()

DEFAULT_DEBOUNCE_MS = 100


def _is_dir(path: Path) -> bool:
    try:
        return path.is_dir()
    except OSError:
        return False


class SkillDiscovery:
    """技能发现引擎 + 注册表"""

    def __init__(
        self,
        search_paths: Iterable[Path | str],
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        force_polling: bool | None = None,
    ) -> None:
        self._search_paths: list[Path] = [Path(p).expanduser().absolute() for p in search_paths]
        self._debounce_s = debounce_ms / 1000
        self._force_polling = force_polling

        self._skills: dict[str, SkillRecord] = {}
        self._write_lock = asyncio.Lock()
        self._listeners: list[DiscoveryListener] = []

        self._scans_in_flight = 0
        self._watch_task: asyncio.Task | None = None
        self._stop_event: asyncio.Event | None = None
        self._pending: dict[Path, asyncio.Task] = {}
        # 监听事件里的路径可能是 resolve 之后的形式，统一映射回配置里的根目录
        self._root_aliases: dict[Path, Path] = {}
        # 缺失搜索目录的上级目录 → 需要关注的下一级目录名
        self._anchor_children: dict[Path, set[str]] = {}
        self._closed = False

    # ── 事件 ──

    def add_listener(self, listener: DiscoveryListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: DiscoveryListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, event: DiscoveryEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                # 订阅方出错不影响注册表
                log.error("技能事件订阅方处理失败", event=event.kind, error=str(e), exc_info=True)

    # ── 读接口 ──

    def get(self, name: str) -> SkillRecord | None:
        return self._skills.get(name)

    def all(self) -> list[SkillRecord]:
        return list(self._skills.values())

    def search(self, query: str) -> list[SkillRecord]:
        """名称或描述包含 query（不区分大小写）"""
        q = query.lower()
        return [
            record
            for record in self._skills.values()
            if q in record.name.lower() or q in record.description.lower()
        ]

    @property
    def search_paths(self) -> list[Path]:
        return list(self._search_paths)

    @property
    def skill_count(self) -> int:
        return len(self._skills)

    @property
    def is_watching(self) -> bool:
        return self._watch_task is not None

    @property
    def state(self) -> str:
        """idle | scanning | watching | closed"""
        if self._closed:
            return "closed"
        if self._watch_task is not None:
            return "watching"
        if self._scans_in_flight:
            return "scanning"
        return "idle"

    # ── 加载单个技能 ──

    @staticmethod
    def _load_record(manifest_path: Path) -> tuple[SkillRecord | None, Exception | None]:
        """
        读取并解析一个 SKILL.md（在线程中执行）。

        Returns:
            (record, analysis_error)：name 为空时 record 为 None；
            正文分析失败时 record.document 为 None，analysis_error 为失败原因
        Raises:
            OSError / UnicodeDecodeError：文件读取失败
            FrontmatterError：frontmatter 分隔行完整但 YAML 非法
        """
        text = manifest_path.read_text(encoding="utf-8")
        frontmatter, body = split_frontmatter(text, strict=True)
        if not frontmatter.name:
            return None, None

        skill_dir = manifest_path.parent
        document: ParsedDocument | None = None
        analysis_error: Exception | None = None
        try:
            outline, code_blocks, links = analyze_body(body)
            document = ParsedDocument(
                frontmatter=frontmatter,
                body=body,
                outline=outline,
                code_blocks=code_blocks,
                links=links,
                files=list_skill_files(skill_dir),
            )
        except Exception as e:
            analysis_error = e

        record = SkillRecord(
            name=frontmatter.name,
            description=frontmatter.description,
            directory_path=skill_dir,
            manifest_path=manifest_path,
            document=document,
        )
        return record, analysis_error

    async def _discover(self, manifest_path: Path) -> SkillRecord | None:
        try:
            record, analysis_error = await asyncio.to_thread(self._load_record, manifest_path)
        except Exception as e:
            self._emit(DiscoveryError(cause=e, path=manifest_path))
            return None

        if analysis_error is not None:
            self._emit(DiscoveryError(cause=analysis_error, path=manifest_path))
        if record is None:
            log.debug("SKILL.md 缺少 name，跳过", path=str(manifest_path))
        return record

    # ── 写接口（单写者） ──

    async def _upsert(self, record: SkillRecord) -> None:
        async with self._write_lock:
            skills = dict(self._skills)
            previous = skills.get(record.name)
            # 同一个 SKILL.md 改了 name：旧名字的条目随之失效
            renamed = [
                skills.pop(name)
                for name, existing in list(skills.items())
                if existing.manifest_path == record.manifest_path and name != record.name
            ]
            skills[record.name] = record
            self._skills = skills

        for stale in renamed:
            self._emit(SkillRemoved(name=stale.name, directory_path=stale.directory_path))
        if previous is None:
            self._emit(SkillDiscovered(record=record))
        else:
            if previous.directory_path != record.directory_path:
                log.debug(
                    "技能同名覆盖",
                    skill=record.name,
                    previous=str(previous.directory_path),
                    current=str(record.directory_path),
                )
            self._emit(SkillUpdated(record=record, previous=previous))

    async def _remove_by_manifest(self, manifest_path: Path) -> None:
        async with self._write_lock:
            matches = [
                name for name, record in self._skills.items()
                if record.manifest_path == manifest_path
            ]
            if not matches:
                return
            skills = dict(self._skills)
            removed = [skills.pop(name) for name in matches]
            self._skills = skills

        for record in removed:
            self._emit(SkillRemoved(name=record.name, directory_path=record.directory_path))

    # ── 扫描 ──

    @staticmethod
    def _list_candidates(root: Path) -> list[tuple[Path, OSError | None]]:
        """
        根目录下每个含 SKILL.md 的直接子目录（在线程中执行）。

        根目录不存在 / 不可读时抛 OSError；单个子目录检查失败时连同错误一起返回，
        不影响其他子目录
        """
        candidates: list[tuple[Path, OSError | None]] = []
        for entry in sorted(root.iterdir()):
            manifest_path = entry / MANIFEST_FILENAME
            try:
                if not entry.is_dir():
                    continue
                st = manifest_path.stat()
            except (FileNotFoundError, NotADirectoryError):
                continue
            except OSError as e:
                candidates.append((manifest_path, e))
                continue
            if S_ISREG(st.st_mode):
                candidates.append((manifest_path, None))
        return candidates

    async def _scan_root(self, root: Path) -> int:
        try:
            candidates = await asyncio.to_thread(self._list_candidates, root)
        except OSError as e:
            # 大部分默认目录本来就不存在 / 不可访问，静默跳过
            log.debug("技能目录不可访问，跳过", path=str(root), error=str(e))
            return 0

        loaded = 0
        for manifest_path, error in candidates:
            if error is not None:
                self._emit(DiscoveryError(cause=error, path=manifest_path))
                continue
            record = await self._discover(manifest_path)
            if record is not None:
                await self._upsert(record)
                loaded += 1
        return loaded

    async def scan(self) -> None:
        """扫描全部搜索目录；可重复调用"""
        self._scans_in_flight += 1
        try:
            for root in self._search_paths:
                loaded = await self._scan_root(root)
                if loaded:
                    log.debug("技能目录扫描完成", root=str(root), count=loaded)
        finally:
            self._scans_in_flight -= 1

    # ── 监听 ──

    def watch(self) -> None:
        """
        启动后台监听（需在事件循环内调用，不阻塞调用方）。

        已在监听时重复调用为空操作；close() 之后不再重新启动。
        尚不存在的搜索目录由最近的已存在上级目录（非递归）代为监听，
        目录出现后补扫一次并纳入监听。
        """
        if self._closed:
            log.warning("SkillDiscovery 已关闭，忽略 watch()")
            return
        if self._watch_task is not None:
            return

        # 监听目标在调用时同步确定，之后出现的目录都由监听循环补扫
        roots, anchors = self._watch_targets()
        self._watch_task = asyncio.get_running_loop().create_task(
            self._watch_loop(roots, anchors),
            name="loadout-skill-watch",
        )

    def _watch_targets(self) -> tuple[list[Path], dict[Path, set[str]]]:
        """
        计算监听目标。

        Returns:
            (已存在的搜索目录, {缺失目录最近的已存在上级: 通往缺失目录的下一级目录名})
        """
        roots: list[Path] = []
        anchors: dict[Path, set[str]] = {}
        for root in self._search_paths:
            if _is_dir(root):
                roots.append(root)
                continue
            child, anchor = root, root.parent
            while not _is_dir(anchor) and anchor.parent != anchor:
                child, anchor = anchor, anchor.parent
            if _is_dir(anchor):
                anchors.setdefault(anchor, set()).add(child.name)
        return roots, anchors

    def _use_targets(self, roots: list[Path], anchors: dict[Path, set[str]]) -> None:
        self._root_aliases = {}
        for root in roots:
            self._root_aliases[root] = root
            self._root_aliases[root.resolve()] = root
        self._anchor_children = {}
        for anchor, names in anchors.items():
            self._anchor_children[anchor] = names
            self._anchor_children[anchor.resolve()] = names

    def _manifest_for_change(self, change: Change, path: Path) -> Path | None:
        """把文件系统事件映射到受影响的 SKILL.md 路径；无关事件返回 None"""
        if path.name == MANIFEST_FILENAME:
            root = self._root_aliases.get(path.parent.parent)
            if root is not None:
                return root / path.parent.name / MANIFEST_FILENAME
        # 技能目录整体移入 / 移出
        if change in (Change.added, Change.deleted):
            root = self._root_aliases.get(path.parent)
            if root is not None:
                return root / path.name / MANIFEST_FILENAME
        return None

    def _watch_filter(self, change: Change, path: str) -> bool:
        return self._manifest_for_change(change, Path(path)) is not None

    def _anchor_filter(self, change: Change, path: str) -> bool:
        """上级目录里出现了通往缺失搜索目录的下一级目录"""
        if change != Change.added:
            return False
        p = Path(path)
        names = self._anchor_children.get(p.parent)
        return names is not None and p.name in names

    async def _watch_loop(self, roots: list[Path], anchors: dict[Path, set[str]]) -> None:
        watched: set[Path] | None = None
        try:
            while not self._closed:
                fresh = [] if watched is None else [root for root in roots if root not in watched]
                watched = set(roots)
                self._use_targets(roots, anchors)
                log.debug(
                    "技能目录监听已启动",
                    roots=[str(r) for r in roots],
                    anchors=[str(a) for a in anchors],
                )
                await self._watch_round(roots, anchors, fresh)
                roots, anchors = await asyncio.to_thread(self._watch_targets)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.error("技能目录监听异常退出", error=str(e), exc_info=True)
            self._emit(DiscoveryError(cause=e))

    async def _watch_round(
        self,
        roots: list[Path],
        anchors: dict[Path, set[str]],
        fresh: list[Path],
    ) -> None:
        """一轮监听：缺失的搜索目录路径上出现新目录时结束，由外层重新计算监听目标"""
        stop = asyncio.Event()
        self._stop_event = stop
        tasks = [asyncio.create_task(self._watch_roots(roots, stop))]
        if anchors:
            tasks.append(asyncio.create_task(self._watch_anchors(list(anchors), stop)))
        try:
            if fresh:
                # 监听挂上之后再补扫
                await asyncio.sleep(self._debounce_s)
                for root in fresh:
                    log.info("技能目录已出现，补扫", root=str(root))
                    await self._scan_root(root)
            await asyncio.gather(*tasks)
        finally:
            stop.set()
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _watch_roots(self, roots: list[Path], stop: asyncio.Event) -> None:
        if not roots:
            await stop.wait()
            return
        async for changes in awatch(
            *roots,
            watch_filter=self._watch_filter,
            stop_event=stop,
            debounce=50,
            step=10,
            force_polling=self._force_polling,
        ):
            for change, raw_path in changes:
                manifest_path = self._manifest_for_change(change, Path(raw_path))
                if manifest_path is not None:
                    self._schedule(manifest_path)

    async def _watch_anchors(self, anchors: list[Path], stop: asyncio.Event) -> None:
        async for changes in awatch(
            *anchors,
            watch_filter=self._anchor_filter,
            stop_event=stop,
            recursive=False,
            debounce=50,
            step=10,
            force_polling=self._force_polling,
        ):
            log.debug("搜索目录路径上出现新目录", paths=sorted(p for _, p in changes))
            stop.set()

    def _schedule(self, manifest_path: Path) -> None:
        """(重新) 启动该路径的防抖计时器"""
        pending = self._pending.pop(manifest_path, None)
        if pending is not None:
            pending.cancel()
        self._pending[manifest_path] = asyncio.create_task(self._settle(manifest_path))

    async def _settle(self, manifest_path: Path) -> None:
        try:
            await asyncio.sleep(self._debounce_s)
            await self._sync_manifest(manifest_path)
        finally:
            if self._pending.get(manifest_path) is asyncio.current_task():
                del self._pending[manifest_path]

    async def _sync_manifest(self, manifest_path: Path) -> None:
        """以磁盘当前状态为准同步一个 SKILL.md"""
        try:
            exists = await asyncio.to_thread(manifest_path.is_file)
        except OSError as e:
            self._emit(DiscoveryError(cause=e, path=manifest_path))
            return
        if not exists:
            await self._remove_by_manifest(manifest_path)
            return
        record = await self._discover(manifest_path)
        if record is not None:
            await self._upsert(record)

    async def close(self) -> None:
        """停止监听并释放资源；未监听时调用安全，可重复调用"""
        self._closed = True
        if self._stop_event is not None:
            self._stop_event.set()

        tasks = list(self._pending.values())
        self._pending.clear()
        if self._watch_task is not None:
            tasks.append(self._watch_task)
            self._watch_task = None

        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
