from __future__ import annotations

import unicodedata
from urllib.parse import quote

DISPOSITION_TYPES: tuple[str, ...] = ("inline", "attachment")

# Characters left unescaped, on top of the alphanumerics and "_.-~" that
# urllib.parse.quote never escapes.
_TRADITIONAL_SAFE = " !#$+^`|"
_RFC_5987_SAFE = "!#$&+^`|"


def sanitize_filename(filename: str) -> str:
    """Sanitize filename by removing path separators and control characters."""
    cleaned = "".join(ch for ch in filename if unicodedata.category(ch) != "Cc")
    cleaned = cleaned.strip().replace("\\", "_").replace("/", "_")
    return cleaned or "file"


def _ascii_fallback(filename: str) -> str:
    decomposed = unicodedata.normalize("NFKD", filename)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return "".join(ch if ch.isascii() else "?" for ch in stripped)


def content_disposition_with(filename: str | None, disposition: str | None = None) -> str:
    """Format a Content-Disposition value for ``filename``.

    Unknown disposition types fall back to ``inline``. The filename is given
    both as an ASCII ``filename`` and an RFC 5987 ``filename*`` parameter.
    """
    kind = (disposition or "").strip().lower()
    if kind not in DISPOSITION_TYPES:
        kind = "inline"
    if not filename:
        return kind

    name = sanitize_filename(filename)
    ascii_name = quote(_ascii_fallback(name), safe=_TRADITIONAL_SAFE)
    utf8_name = quote(name, safe=_RFC_5987_SAFE)
    return f"{kind}; filename=\"{ascii_name}\"; filename*=UTF-8''{utf8_name}"
