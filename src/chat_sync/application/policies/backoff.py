from __future__ import annotations


def calc_backoff(attempt: int, *, base_delay: float, max_delay: float) -> float:
    """Delay before reconnect attempt ``attempt`` (1-based): base * 2^(attempt-1), capped."""
    if attempt < 1:
        return 0.0
    return min(base_delay * (2 ** (attempt - 1)), max_delay)
