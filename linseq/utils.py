from __future__ import annotations
import math

__all__ = ["log_odds_to_prob", "next_power_of_2"]


def log_odds_to_prob(log_odds: float) -> float:
    """Converts a log-odds score (e.g. a model prediction) into a probability."""
    if log_odds >= 0:
        return 1.0 / (1.0 + math.exp(-log_odds))
    odds = math.exp(log_odds)
    return odds / (odds + 1.0)


def next_power_of_2(n: int) -> int:
    """Smallest power of two >= n, and 0 for n <= 0. Handy for sizing hashed weight vectors."""
    if n <= 0:
        return 0
    return 1 << (n - 1).bit_length()
