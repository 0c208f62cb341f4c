"""
Text Utilities
--------------

Small pure helpers used when turning feed records into posts:

- truncate: cap a string to a display budget, the ellipsis counting toward it.
- short_addr: shorten an ethereum-style address (e.g. 0x38a16…c7eb3).
- strip_mentions: drop the `@` sigil from handles so posts never mention
  accounts on the author's behalf.
"""

import re

DEFAULT_MAX_LENGTH = 140
ELLIPSIS = "…"

ADDR_PREFIX_LENGTH = 7
ADDR_SUFFIX_LENGTH = 5

# A mention sigil only counts when it follows start-of-string, whitespace or
# one of these punctuation characters.
_BOUNDARY_CHARS = r"""\s^(){}\[\]+\-\\/.,|<>?'":;"""
_MENTION_RE = re.compile(rf"(?<![^{_BOUNDARY_CHARS}])@+")


def truncate(text: str, length: int = DEFAULT_MAX_LENGTH, ending: str = ELLIPSIS) -> str:
    if length <= len(ending):
        raise ValueError(f"length ({length}) must exceed the ellipsis length ({len(ending)})")
    if len(text) > length:
        return text[: length - len(ending)] + ending
    return text


def short_addr(addr: str) -> str:
    """Returns a shortened version of a full ethereum address."""
    if len(addr) <= ADDR_PREFIX_LENGTH + ADDR_SUFFIX_LENGTH:
        return addr
    return f"{addr[:ADDR_PREFIX_LENGTH]}{ELLIPSIS}{addr[-ADDR_SUFFIX_LENGTH:]}"


def strip_mentions(text: str) -> str:
    """
    Remove the `@` sigil of every mention that sits on a boundary.

    The handle text itself is kept ("nice @spammer" -> "nice spammer"). A run
    of sigils is removed as a whole, so applying this twice changes nothing.
    """
    return _MENTION_RE.sub("", text)
