"""
RunSkillScriptTool: 执行技能 scripts/ 下的脚本

默认关闭（ALLOW_SCRIPTS=false），开启后经 ScriptSandbox 校验并执行；
脚本的非零退出码、超时都作为正常结果返回，由调用方自行判断。
"""

from pydantic import BaseModel, Field

from loadout.execution.sandbox import ALLOWED_EXTENSIONS, ScriptSandbox
from loadout.tools.base import BaseTool, ToolResult


class _Params(BaseModel):
    skill: str = Field(description="脚本所属技能名称")
    script: str = Field(description="scripts/ 目录下的脚本文件名（含扩展名），例：extract.py")
    args: list[str] = Field(default_factory=list, description="传给脚本的命令行参数")


class RunSkillScriptTool(BaseTool):

    def __init__(
        self,
        sandbox: ScriptSandbox,
        enabled: bool,
        script_timeout_ms: int,
        kill_grace_ms: int,
    ) -> None:
        self._sandbox = sandbox
        self._enabled = enabled
        self._script_timeout_ms = script_timeout_ms
        self._kill_grace_ms = kill_grace_ms

    @property
    def name(self) -> str:
        return "run_skill_script"

    @property
    def description(self) -> str:
        return (
            "执行技能 scripts/ 目录下的脚本（仅允许 "
            + " ".join(ALLOWED_EXTENSIONS)
            + "），返回 stdout / stderr / exitCode"
        )

    @property
    def params_model(self) -> type[BaseModel]:
        return _Params

    @property
    def timeout_ms(self) -> int:
        # 脚本超时 + 终止宽限期之外再留余量，Registry 兜底超时不应先于沙箱触发
        return self._script_timeout_ms + self._kill_grace_ms + 1_000

    async def execute(self, args: dict) -> ToolResult:
        if not self._enabled:
            return ToolResult.fail("Script execution is disabled. Enable it with ALLOW_SCRIPTS=true.")

        params = self.parse_args(args)
        result = await self._sandbox.run(
            params.skill,
            params.script,
            params.args,
            timeout_s=self._script_timeout_ms / 1000,
        )
        return ToolResult.success(**result.to_dict())
