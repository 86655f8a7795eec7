# gridsync/services/validation.py
import re
from enum import Enum
from typing import Iterable, Optional

from gridsync.models.schemas import MAX_CONTENT_LENGTH

_SINGLE = re.compile(r"[A-Za-z0-9]")
_PAIR = re.compile(r"[A-Za-z][0-9]|[0-9][A-Za-z]")


class ContentCategory(str, Enum):
    EMPTY = "empty"
    RESTRICTED = "restricted"
    VALID = "valid"
    INVALID = "invalid"


def normalize_content(raw: str) -> str:
    """Trim whitespace and cut to the maximum cell length."""
    return raw.strip()[:MAX_CONTENT_LENGTH]


def is_valid_content(content: str) -> bool:
    """
    Accept "", a single letter or digit, or exactly one letter and one
    digit in either order.
    """
    if content == "":
        return True
    if len(content) == 1:
        return bool(_SINGLE.fullmatch(content))
    if len(content) == 2:
        return bool(_PAIR.fullmatch(content))
    return False


def prepare_content(raw: str) -> Optional[str]:
    """
    Client-side gate before an update is sent.

    Returns the content to send, or None when the edit must be dropped. An
    input longer than a cell is refused outright instead of being cut down
    into something that happens to pass.
    """
    trimmed = raw.strip()
    if len(trimmed) > MAX_CONTENT_LENGTH:
        return None
    content = normalize_content(trimmed)
    if not is_valid_content(content):
        return None
    return content


def classify_content(content: str, restricted: Iterable[str] = ()) -> ContentCategory:
    """Display-only category; it never decides whether an edit is accepted."""
    if content == "":
        return ContentCategory.EMPTY
    denylist = {token.lower() for token in restricted}
    if content.lower() in denylist:
        return ContentCategory.RESTRICTED
    if is_valid_content(content):
        return ContentCategory.VALID
    return ContentCategory.INVALID
