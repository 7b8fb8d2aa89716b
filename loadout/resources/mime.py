"""按扩展名猜测 MIME 类型，未知扩展名一律 application/octet-stream"""

MARKDOWN = "text/markdown"
JSON = "application/json"
OCTET_STREAM = "application/octet-stream"

_MIME_TYPES: dict[str, str] = {
    # 文本
    "txt": "text/plain",
    "md": MARKDOWN,
    "markdown": MARKDOWN,
    # 代码
    "js": "text/javascript",
    "mjs": "text/javascript",
    "ts": "text/typescript",
    "mts": "text/typescript",
    "jsx": "text/jsx",
    "tsx": "text/tsx",
    "json": JSON,
    "yaml": "text/yaml",
    "yml": "text/yaml",
    "xml": "application/xml",
    "html": "text/html",
    "css": "text/css",
    "py": "text/x-python",
    "rb": "text/x-ruby",
    "go": "text/x-go",
    "rs": "text/x-rust",
    "java": "text/x-java",
    "c": "text/x-c",
    "cpp": "text/x-c++",
    "h": "text/x-c",
    "hpp": "text/x-c++",
    "sh": "text/x-shellscript",
    "bash": "text/x-shellscript",
    "zsh": "text/x-shellscript",
    "sql": "text/x-sql",
    # 图片
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "svg": "image/svg+xml",
    "webp": "image/webp",
    "ico": "image/x-icon",
    # 文档
    "pdf": "application/pdf",
    "csv": "text/csv",
    # 其他
    "wasm": "application/wasm",
}


def guess_mime_type(filename: str) -> str:
    ext = filename.rsplit(".", 1)[-1].lower()
    return _MIME_TYPES.get(ext, OCTET_STREAM)


def code_block_mime_type(language: str | None) -> str:
    return f"text/x-{language}" if language else "text/plain"
