import re

_VERSION_RE = re.compile(r"^(\d{1,3})(?:\.(\d{1,3})(?:\.(\d{1,3}))?)?")
_PATCH_LEVEL_RE = re.compile(r"^(\d{4})-(\d{2})(?:-(\d{2}))?")


def parse_os_version(text):
    match = _VERSION_RE.search(text)
    if not match:
        raise ValueError(f"Invalid OS version: {text}")
    a, b, c = (int(g) if g is not None else 0 for g in match.groups())
    if a >= 128 or b >= 128 or c >= 128:
        raise ValueError(f"OS version out of range: {text}")
    return (a << 14) | (b << 7) | c


def parse_os_patch_level(text):
    match = _PATCH_LEVEL_RE.search(text)
    if not match:
        raise ValueError(f"Invalid OS patch level: {text}")
    y = int(match.group(1)) - 2000
    m = int(match.group(2))
    if not 0 <= y < 128 or not 0 < m <= 12:
        raise ValueError(f"OS patch level out of range: {text}")
    return (y << 4) | m
