import re
from pathlib import Path

from dtsrollup.models import NewlineKind

_RELATIVE_MODULE_RE = re.compile(r"^\.\.?(/|$)")


def is_relative_module(module_path: str) -> bool:
    """True for "./x", "../x", "." and ".."; everything else is an external package."""
    return bool(_RELATIVE_MODULE_RE.match(module_path))


def strip_quotes(text: str) -> str:
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"', "`"):
        return text[1:-1]
    return text


def convert_newlines(text: str, newline_kind: NewlineKind) -> str:
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    if newline_kind == NewlineKind.CRLF:
        return normalized.replace("\n", "\r\n")
    return normalized


def write_text_file(path: str | Path, text: str, newline_kind: NewlineKind) -> Path:
    """Write ``text`` as UTF-8 with the requested line endings, creating parent folders."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    # newline="" keeps Python from translating the endings again
    with open(target, "w", encoding="utf-8", newline="") as f:
        f.write(convert_newlines(text, newline_kind))
    return target
