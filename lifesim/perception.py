"""Perception: what an agent can see of the world at the moment it decides.

Two views are offered. ``features`` is the continuous vector consumed by the
actor-critic policy; ``state_key`` and ``physio_state_key`` discretize the
same situation into small integer buckets for the tabular learners.
"""
import math
from bisect import bisect_left, bisect_right
from typing import NamedTuple, Optional, Tuple

import numpy as np

from .entities import Agent, Food
from .utils import N_ACTIONS, STAY, clamp_int, encode_action, euclidean, manhattan

_OFFSETS = np.array([(a % 3 - 1, a // 3 - 1) for a in range(N_ACTIONS)], dtype=int)

# bucket edges
FOOD_DIST_EDGES = (2, 5, 10, 20)          # inclusive upper bounds
ENERGY_EDGES = (25, 50, 100, 150)         # strictly-above lower bounds
PHYSIO_DIST_EDGES = (5, 15, 30, 60)       # exclusive upper bounds


class StateKey(NamedTuple):
    food_dir: int
    food_dist: int
    energy: int
    threat: int
    nearby: int
    fatigue: int = 0
    hunger: int = 0
    stress: int = 0


def _distances(xy: np.ndarray, x: int, y: int, metric: str) -> np.ndarray:
    dx = xy[:, 0] - x
    dy = xy[:, 1] - y
    if metric == "euclidean":
        return np.hypot(dx, dy)
    return np.abs(dx) + np.abs(dy)


def nearest_food(world, x: int, y: int, metric: str = "manhattan",
                 max_dist: Optional[float] = None) -> Tuple[Optional[Food], float]:
    """Closest food and its distance; ties go to the earliest-registered food."""
    xy = world.food_array()
    if len(xy) == 0:
        return None, math.inf
    d = _distances(xy, x, y, metric)
    i = int(np.argmin(d))
    best = float(d[i])
    if max_dist is not None and best >= max_dist:
        return None, math.inf
    fx, fy = int(xy[i, 0]), int(xy[i, 1])
    return world.foods[world.food_key(fx, fy)], best


def distance_to_nearest_food(world, x: int, y: int) -> float:
    _, d = nearest_food(world, x, y)
    if math.isinf(d):
        return float(world.W + world.H)
    return d


def food_bias(world, agent: Agent, scale: float) -> np.ndarray:
    """Per-action shaping: how much closer to food each of the 9 moves gets us."""
    xy = world.food_array()
    if len(xy) == 0:
        return np.zeros(N_ACTIONS)
    now = float(_distances(xy, agent.x, agent.y, "manhattan").min())
    nx = np.clip(agent.x + _OFFSETS[:, 0], 0, world.W - 1)
    ny = np.clip(agent.y + _OFFSETS[:, 1], 0, world.H - 1)
    after = (np.abs(xy[None, :, 0] - nx[:, None]) + np.abs(xy[None, :, 1] - ny[:, None])).min(axis=1)
    return (now - after) * scale


def threat_score(world, agent: Agent, radius: int) -> float:
    threat = 0.0
    for other in world.agents.values():
        if other.id == agent.id or other.sex != agent.sex:
            continue
        d = manhattan(other.x, other.y, agent.x, agent.y)
        if d <= radius:
            val = max(0.0, other.traits.strength - agent.traits.strength) / 10.0 * (1.0 / (d + 1.0))
            threat = max(threat, val)
    return min(threat, 1.0)


def features(world, agent: Agent) -> np.ndarray:
    food, _ = nearest_food(world, agent.x, agent.y)
    if food is not None:
        dx = (food.x - agent.x) / world.W
        dy = (food.y - agent.y) / world.H
    else:
        dx = dy = 0.0
    energy = min(agent.energy / 100.0, 1.0)
    threat = threat_score(world, agent, world.cfg.THREAT_RADIUS)
    return np.array([1.0, dx, dy, energy, threat])


def state_key(world, agent: Agent) -> StateKey:
    cfg = world.cfg
    food, dist = nearest_food(world, agent.x, agent.y)
    if food is None:
        food_dir, food_dist = STAY, len(FOOD_DIST_EDGES)
    else:
        sx = clamp_int(food.x - agent.x, -1, 1)
        sy = clamp_int(food.y - agent.y, -1, 1)
        food_dir = encode_action(sx, sy)
        food_dist = bisect_left(FOOD_DIST_EDGES, dist)

    rivals = nearby = 0
    for other in world.agents.values():
        if other.id == agent.id:
            continue
        d = manhattan(other.x, other.y, agent.x, agent.y)
        if d <= cfg.CROWD_RADIUS:
            nearby += 1
        if other.sex == agent.sex and d <= cfg.RIVAL_RADIUS:
            rivals += 1

    return StateKey(
        food_dir=food_dir,
        food_dist=food_dist,
        energy=bisect_left(ENERGY_EDGES, agent.energy),
        threat=min(rivals, 3),
        nearby=min(nearby, 3),
    )


def physio_state_key(world, agent: Agent) -> StateKey:
    """Extended view: Euclidean, 8-way food bearing, plus physiology buckets."""
    cfg = world.cfg
    v = agent.vitals
    food, dist = nearest_food(world, agent.x, agent.y, metric="euclidean",
                              max_dist=cfg.PHYSIO_FOOD_SIGHT)
    if food is None:
        food_dir, food_dist = 8, len(PHYSIO_DIST_EDGES)
    else:
        angle = math.degrees(math.atan2(food.y - agent.y, food.x - agent.x))
        food_dir = int((angle + 360) / 45) % 8
        food_dist = bisect_right(PHYSIO_DIST_EDGES, dist)

    threat = nearby = 0
    for other in world.agents.values():
        if other.id == agent.id:
            continue
        if euclidean(other.x, other.y, agent.x, agent.y) >= cfg.PHYSIO_CROWD_RADIUS:
            continue
        nearby += 1
        if other.traits.aggression > 0.7 and other.traits.strength > agent.traits.strength:
            threat = 2
        elif other.traits.aggression > 0.5:
            threat = max(threat, 1)

    return StateKey(
        food_dir=food_dir,
        food_dist=food_dist,
        energy=clamp_int(int(agent.energy // 25), 0, 4),
        threat=threat,
        nearby=min(nearby, 3),
        fatigue=clamp_int(int(v.fatigue // 25), 0, 4),
        hunger=clamp_int(int(v.hunger // 33), 0, 3),
        stress=clamp_int(int(v.stress // 33), 0, 3),
    )
