"""
Input normalisation for profile references.

Users paste either a profile URL ("https://x.com/alice", "instagram.com/bob")
or a handle ("@alice", "alice"). `extract_username` turns both into the
canonical username for a platform, using the platform registry's URL pattern
and allowed character class.
"""

import re
from typing import Optional

from core.exceptions import InvalidInputError
from core.platforms import Platform, get_platform_config


def extract_username(raw_input: Optional[str], platform: Platform) -> Optional[str]:
    """
    Return the canonical username for `raw_input`, or None when nothing usable
    remains.

    A single leading "@" is dropped. If the rest matches the platform's profile
    URL shape, the captured path segment is returned as is; otherwise the input
    is treated as a bare handle and every character outside the platform's
    allowed set is removed.
    """
    if raw_input is None:
        return None

    config = get_platform_config(platform)
    cleaned = raw_input.strip()
    if cleaned.startswith("@"):
        cleaned = cleaned[1:]

    match = config.url_pattern.search(cleaned)
    if match:
        return match.group(1)

    username = re.sub(f"[^{config.allowed_chars}]", "", cleaned)
    return username or None


def require_username(raw_input: Optional[str], platform: Platform) -> str:
    """Like `extract_username`, but raise `InvalidInputError` instead of returning None"""
    username = extract_username(raw_input, platform)
    if not username:
        raise InvalidInputError(field="profile")
    return username
