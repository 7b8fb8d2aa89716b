"""
技能脚本沙箱

只允许执行已注册技能 scripts/ 目录下直接存放的脚本：

    run("pdf-tools", "extract.py", ["--page", "1"])
      → 校验（注册 / 路径 / 扩展名 / 目录归属 / 存在）
      → python scripts/extract.py --page 1   （cwd = 技能目录，stdin = /dev/null）
      → ScriptResult(stdout, stderr, exit_code)

校验失败抛 ScriptValidationError / SkillNotRegisteredError；
一旦进入执行阶段不再抛异常：启动失败、超时都以 exit_code=None + stderr 标记的形式返回。

超时处理：先 SIGTERM，宽限期内未退出再 SIGKILL。脚本在独立进程组中启动，
信号发给整个进程组，shell 脚本派生的子进程一并结束。
"""

from __future__ import annotations

import asyncio
import os
import signal
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

import structlog

from loadout.errors import ScriptValidationError, SkillNotRegisteredError
from loadout.skills.discovery import SkillDiscovery

log = structlog.get_logger()

ALLOWED_EXTENSIONS = (".sh", ".js", ".ts", ".py")

TIMEOUT_MARKER = "[Script execution timed out]"

DEFAULT_TIMEOUT_S = 30.0
DEFAULT_KILL_GRACE_S = 5.0

_READ_CHUNK = 4096


@dataclass
class ScriptResult:
    stdout: str
    stderr: str
    exit_code: int | None  # None = 超时或未能启动
    timed_out: bool = False
    duration_ms: int = 0

    def to_dict(self) -> dict:
        return {"stdout": self.stdout, "stderr": self.stderr, "exitCode": self.exit_code}


def interpreter_for(script_path: Path) -> list[str]:
    """按扩展名选择解释器，返回完整命令（不含脚本参数）"""
    ext = script_path.suffix
    if ext == ".sh":
        return ["bash", str(script_path)]
    if ext == ".js":
        return ["node", str(script_path)]
    if ext == ".ts":
        return ["npx", "tsx", str(script_path)]
    if ext == ".py":
        return [sys.executable, str(script_path)]
    raise ValueError(f"不支持的脚本类型: {script_path.name}")


async def _drain(stream: asyncio.StreamReader, chunks: list[bytes]) -> None:
    while chunk := await stream.read(_READ_CHUNK):
        chunks.append(chunk)


def _signal_group(proc: asyncio.subprocess.Process, sig: int) -> None:
    try:
        os.killpg(proc.pid, sig)
    except ProcessLookupError:
        pass


class ScriptSandbox:
    """受限脚本执行器，每次 run() 独立管理自己的子进程与超时升级"""

    def __init__(
        self,
        discovery: SkillDiscovery,
        default_timeout_s: float = DEFAULT_TIMEOUT_S,
        kill_grace_s: float = DEFAULT_KILL_GRACE_S,
    ) -> None:
        self._discovery = discovery
        self._default_timeout_s = default_timeout_s
        self._kill_grace_s = kill_grace_s

    # ── 校验 ──

    def validate_script(self, skill_name: str, script_name: str) -> Path:
        """
        校验脚本请求，返回脚本的绝对路径。

        Raises:
            SkillNotRegisteredError: 技能未注册
            ScriptValidationError: 路径穿越 / 扩展名不允许 / 不在 scripts/ 下 / 文件不存在
        """
        record = self._discovery.get(skill_name)
        if record is None:
            raise SkillNotRegisteredError(skill_name)

        # 只接受 scripts/ 下的单个文件名
        segments = script_name.replace("\\", "/").split("/")
        if (
            not script_name
            or ".." in segments
            or len(segments) > 1
            or os.path.isabs(script_name)
            or script_name == "."
        ):
            raise ScriptValidationError(
                f"Invalid script name: {script_name!r}. Must be a file name directly inside scripts/",
                ScriptValidationError.TRAVERSAL,
            )

        ext = Path(script_name).suffix
        if ext not in ALLOWED_EXTENSIONS:
            raise ScriptValidationError(
                f"Script type not allowed: {ext or '(none)'}. Allowed: {', '.join(ALLOWED_EXTENSIONS)}",
                ScriptValidationError.EXTENSION,
            )

        scripts_dir = record.scripts_dir.resolve()
        script_path = (scripts_dir / script_name).resolve()
        if script_path.parent != scripts_dir:
            raise ScriptValidationError(
                f"Script path escapes scripts directory: {script_name}",
                ScriptValidationError.OUTSIDE_SCRIPTS_DIR,
            )

        if not script_path.is_file():
            raise ScriptValidationError(
                f"Script not found: {script_name}",
                ScriptValidationError.MISSING,
            )
        return script_path

    # ── 执行 ──

    async def run(
        self,
        skill_name: str,
        script_name: str,
        args: Sequence[str] = (),
        timeout_s: float | None = None,
    ) -> ScriptResult:
        """校验并执行脚本。校验失败抛异常，执行阶段的任何失败都体现在 ScriptResult 中"""
        script_path = self.validate_script(skill_name, script_name)
        record = self._discovery.get(skill_name)
        cwd = record.directory_path if record is not None else script_path.parent.parent

        command = [*interpreter_for(script_path), *(str(a) for a in args)]
        timeout = timeout_s if timeout_s is not None else self._default_timeout_s

        result = await self._execute(command, cwd, timeout)
        log.info(
            "技能脚本执行完成",
            skill=skill_name,
            script=script_name,
            exit_code=result.exit_code,
            timed_out=result.timed_out,
            duration_ms=result.duration_ms,
        )
        return result

    async def _execute(self, command: list[str], cwd: Path, timeout_s: float) -> ScriptResult:
        start = time.perf_counter()
        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                cwd=str(cwd),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except Exception as e:
            log.error("技能脚本启动失败", command=command[0], error=str(e))
            return ScriptResult(
                stdout="",
                stderr=f"\n[Script execution error: {e}]",
                exit_code=None,
                duration_ms=int((time.perf_counter() - start) * 1000),
            )

        stdout_chunks: list[bytes] = []
        stderr_chunks: list[bytes] = []
        readers = [
            asyncio.create_task(_drain(proc.stdout, stdout_chunks)),
            asyncio.create_task(_drain(proc.stderr, stderr_chunks)),
        ]

        timed_out = False
        try:
            await asyncio.wait_for(proc.wait(), timeout=timeout_s)
        except asyncio.TimeoutError:
            timed_out = True
            log.warning("技能脚本执行超时，终止进程", command=command[-1], timeout_s=timeout_s)
            await self._terminate(proc)
        except asyncio.CancelledError:
            # 调用方被取消，子进程不能遗留
            _signal_group(proc, signal.SIGKILL)
            for reader in readers:
                reader.cancel()
            # 回收子进程，不留僵尸
            await asyncio.shield(proc.wait())
            raise

        # 进程已退出；孙进程若仍持有管道，最多再等一个宽限期
        _, still_reading = await asyncio.wait(readers, timeout=self._kill_grace_s)
        for reader in still_reading:
            reader.cancel()
        if still_reading:
            await asyncio.gather(*still_reading, return_exceptions=True)

        stdout = b"".join(stdout_chunks).decode(errors="replace")
        stderr = b"".join(stderr_chunks).decode(errors="replace")
        if timed_out:
            stderr += f"\n{TIMEOUT_MARKER}"

        return ScriptResult(
            stdout=stdout,
            stderr=stderr,
            exit_code=None if timed_out else proc.returncode,
            timed_out=timed_out,
            duration_ms=int((time.perf_counter() - start) * 1000),
        )

    async def _terminate(self, proc: asyncio.subprocess.Process) -> None:
        """SIGTERM → 宽限期 → SIGKILL"""
        _signal_group(proc, signal.SIGTERM)
        try:
            await asyncio.wait_for(proc.wait(), timeout=self._kill_grace_s)
        except asyncio.TimeoutError:
            log.warning("技能脚本未响应 SIGTERM，强制结束", pid=proc.pid, grace_s=self._kill_grace_s)
            _signal_group(proc, signal.SIGKILL)
            await proc.wait()
