from __future__ import annotations

import re

NOT_SPECIFIED = "Not specified"
NONE_SPECIFIED_MARKER = "_None specified._"

_MARKDOWN_INLINE_SPECIALS = re.compile(r"([\\`*_\[\]<>|&~])")
_LINE_START_BLOCK_MARKER = re.compile(r"^(\s*)([#+\->])")
_LINE_START_ORDERED_MARKER = re.compile(r"^(\s*\d+)([.)])(\s|$)")
# A closing "#" run would be stripped from an ATX heading.
_TRAILING_HASH_RUN = re.compile(r"(\s)(#+)$")
_FILENAME_UNSAFE = re.compile(r"[^A-Za-z0-9_]")
_KEBAB_UNSAFE = re.compile(r"[^a-z0-9]+")


def normalize_text(value: str) -> str:
    return " ".join(value.split()).strip()


def escape_markdown(value: str) -> str:
    """Escape Markdown control characters so AI text renders literally.

    Inline specials are backslash-escaped anywhere. Block markers are escaped
    at the start of the text, and a trailing "#" run so a heading keeps it.
    """
    text = normalize_text(value)
    if not text:
        return ""
    text = _MARKDOWN_INLINE_SPECIALS.sub(r"\\\1", text)
    # ">" was already escaped inline, so only "#", "+" and "-" can remain here.
    text = _LINE_START_BLOCK_MARKER.sub(r"\1\\\2", text)
    text = _LINE_START_ORDERED_MARKER.sub(r"\1\\\2\3", text)
    text = _TRAILING_HASH_RUN.sub(lambda match: match.group(1) + "\\#" * len(match.group(2)), text)
    return text


def unescape_markdown(value: str) -> str:
    return re.sub(r"\\([\\`*_\[\]<>|&~#+\-.)!])", r"\1", value)


def code_fence_for(code: str) -> str:
    longest = max((len(run) for run in re.findall(r"`+", code)), default=0)
    return "`" * max(3, longest + 1)


def sanitize_filename(title: str) -> str:
    sanitized = _FILENAME_UNSAFE.sub("_", title or "")
    return sanitized or "project"


def to_kebab_case(value: str) -> str:
    return _KEBAB_UNSAFE.sub("-", value.lower()).strip("-")


def is_kebab_case(value: str) -> bool:
    return bool(value) and to_kebab_case(value) == value
