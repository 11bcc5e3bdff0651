"""Translation of glob patterns and directory prefixes into SQL ``LIKE`` patterns.

Only ``*``, ``?`` and, inside a glob, ``.`` act as wildcards. Characters that
``LIKE`` itself treats specially are escaped with ``LIKE_ESCAPE``.
"""

LIKE_ESCAPE = "\\"

GLOB_CHARS = ("*", "?")

# A dot inside a glob matches any single character, so "*.*" matches
# every non-empty path, extension or not.
GLOB_TRANSLATION = {
    "*": "%",
    "?": "_",
    ".": "_",
}


def escape_like(text: str) -> str:
    out: list[str] = []
    for char in text:
        if char in ("%", "_", LIKE_ESCAPE):
            out.append(LIKE_ESCAPE)
        out.append(char)
    return "".join(out)


def is_glob(pattern: str) -> bool:
    return any(char in pattern for char in GLOB_CHARS)


def prefix_to_like(dir_prefix: str) -> str:
    return f"{escape_like(dir_prefix)}%"


def pattern_to_like(pattern: str) -> str:
    """Return an unanchored ``LIKE`` pattern for ``pattern``.

    A pattern without ``*`` or ``?`` is matched as a plain substring, so
    ``"f1"`` selects every path containing ``f1``.
    """
    if not is_glob(pattern):
        return f"%{escape_like(pattern)}%"

    out: list[str] = []
    for char in pattern:
        translated = GLOB_TRANSLATION.get(char)
        out.append(translated if translated is not None else escape_like(char))
    return f"%{''.join(out)}%"
