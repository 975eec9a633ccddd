from __future__ import annotations

_UNITS = (
    ("day", 86400),
    ("hour", 3600),
    ("minute", 60),
    ("second", 1),
)


def _unit(value: int, name: str) -> str:
    return f"{value} {name}" if value == 1 else f"{value} {name}s"


def format_duration(seconds: int) -> str:
    """Format ``seconds`` as the largest non-zero unit plus the next one down.

    ``90061`` -> ``"1 day, 1 hour"``; ``3725`` -> ``"1 hour, 2 minutes"``;
    ``42`` -> ``"42 seconds"``. Negative input is treated as zero.
    """
    remaining = max(0, int(seconds))
    parts: list[tuple[str, int]] = []
    for name, size in _UNITS:
        parts.append((name, remaining // size))
        remaining %= size

    for idx, (name, value) in enumerate(parts):
        if value == 0 or name == "second":
            continue
        next_name, next_value = parts[idx + 1]
        return f"{_unit(value, name)}, {_unit(next_value, next_name)}"
    return _unit(parts[-1][1], "second")
