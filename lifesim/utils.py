import math
from typing import Tuple

N_ACTIONS = 9
STAY = 4


def clamp(v: float, lo: float, hi: float) -> float:
    return float(min(max(v, lo), hi))


def clamp_int(v: int, lo: int, hi: int) -> int:
    return int(min(max(v, lo), hi))


def manhattan(ax, ay, bx, by) -> int:
    return abs(ax - bx) + abs(ay - by)


def euclidean(ax, ay, bx, by) -> float:
    return math.hypot(ax - bx, ay - by)


def encode_action(dx: int, dy: int) -> int:
    return (dy + 1) * 3 + (dx + 1)


def decode_action(action: int) -> Tuple[int, int]:
    """Action index -> (dx, dy) offset, both in {-1, 0, 1}."""
    return action % 3 - 1, action // 3 - 1
