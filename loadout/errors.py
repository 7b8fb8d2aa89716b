"""
应用级异常

同步失败（未注册 / 未解析 / URI 非法 / 资源不存在 / 脚本校验失败）直接抛给调用方，
由工具层或外层协议决定如何呈现。扫描错误与进程失败不走异常，
分别通过 DiscoveryError 事件和 ScriptResult 以数据形式返回。
"""


class LoadoutError(Exception):
    """所有 loadout 异常的基类"""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class SkillNotRegisteredError(LoadoutError):
    """请求的技能不在注册表中"""

    def __init__(self, name: str):
        super().__init__(f"Skill not found: {name}")
        self.name = name


class SkillNotParsedError(LoadoutError):
    """技能已注册但 SKILL.md 正文解析失败，只剩全文读取可用"""

    def __init__(self, name: str):
        super().__init__(f"Skill not parsed: {name}")
        self.name = name


class InvalidUriError(LoadoutError):
    """URI 不符合任何已知形态或参数个数"""

    def __init__(self, uri: str, reason: str = ""):
        message = f"Invalid skill URI: {uri}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.uri = uri


class ResourceNotFoundError(LoadoutError):
    """URI 形态合法，但具体目标（章节 / 代码块 / 文件）不存在"""


class ScriptValidationError(LoadoutError):
    """脚本执行请求未通过路径 / 扩展名安全校验"""

    # reason 取值
    TRAVERSAL = "traversal"
    EXTENSION = "extension"
    OUTSIDE_SCRIPTS_DIR = "outside_scripts_dir"
    MISSING = "missing"

    def __init__(self, message: str, reason: str):
        super().__init__(message)
        self.reason = reason


class FrontmatterError(LoadoutError):
    """SKILL.md 有 frontmatter 分隔行，但 YAML 非法或不是 mapping"""
