import logging
import math
from collections import deque
from typing import Deque, Dict, List, Optional, Set, Tuple

import numpy as np

from .config import CFG
from .entities import Agent, Event, Food, SocialGroup

log = logging.getLogger(__name__)


class World:
    """Grid, agent registry, food registry and the bookkeeping around them.

    All mutation goes through the owning ``Sim`` while it holds its lock;
    nothing here is thread-safe on its own.
    """

    def __init__(self, cfg: CFG, rng: np.random.Generator):
        self.cfg = cfg
        self.rng = rng
        self.W, self.H = cfg.W, cfg.H

        self.agents: Dict[int, Agent] = {}
        self.foods: Dict[int, Food] = {}          # keyed by x*H + y
        self.groups: Dict[int, SocialGroup] = {}
        self.lineage: Dict[int, Tuple[int, ...]] = {}
        self.events: Deque[Event] = deque(maxlen=cfg.EVENT_LOG_CAP)
        self.random_food = cfg.RANDOM_FOOD

        self.tick = 0
        self.next_id = 1
        self.next_group_id = 1

        # cumulative counters
        self.births = 0
        self.deaths = 0
        self.merges = 0
        self.total_age_at_death = 0

        # per-tick scratch
        self.newborns: List[Agent] = []
        self.bred: Set[int] = set()

        self._food_xy: Optional[np.ndarray] = None

    # ----- ids / geometry -----

    def claim_id(self) -> int:
        nid = self.next_id
        self.next_id += 1
        return nid

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.W and 0 <= y < self.H

    def food_key(self, x: int, y: int) -> int:
        return x * self.H + y

    def agent_at(self, x: int, y: int) -> bool:
        return any(a.x == x and a.y == y for a in self.agents.values())

    # ----- food -----

    def food_at(self, x: int, y: int) -> Optional[Food]:
        return self.foods.get(self.food_key(x, y))

    def place_food(self, x: int, y: int, energy: float, occupied: Optional[Set[Tuple[int, int]]] = None) -> bool:
        """Put food on a free cell. Returns False (and does nothing) otherwise."""
        if not self.in_bounds(x, y) or not math.isfinite(energy) or energy <= 0:
            return False
        key = self.food_key(x, y)
        if key in self.foods:
            return False
        if occupied is not None:
            if (x, y) in occupied:
                return False
        elif self.agent_at(x, y):
            return False
        self.foods[key] = Food(x=x, y=y, energy=float(energy))
        self._food_xy = None
        return True

    def take_food(self, x: int, y: int) -> Optional[Food]:
        food = self.foods.pop(self.food_key(x, y), None)
        if food is not None:
            self._food_xy = None
        return food

    def spawn_food(self) -> int:
        """Probabilistic passive spawn; attempts scale with grid area."""
        cfg = self.cfg
        if not self.random_food:
            return 0
        occupied = {(a.x, a.y) for a in self.agents.values()}
        attempts = (self.W * self.H) // cfg.FOOD_ATTEMPT_DIVISOR
        spawned = 0
        for _ in range(attempts):
            if self.rng.random() >= cfg.RANDOM_FOOD_PROB:
                continue
            x = int(self.rng.integers(0, self.W))
            y = int(self.rng.integers(0, self.H))
            energy = self.rng.uniform(*cfg.FOOD_ENERGY)
            if self.place_food(x, y, energy, occupied=occupied):
                spawned += 1
        return spawned

    def food_array(self) -> np.ndarray:
        """(F, 2) int array of food coordinates in registry insertion order."""
        if self._food_xy is None:
            if self.foods:
                self._food_xy = np.array([(f.x, f.y) for f in self.foods.values()], dtype=int)
            else:
                self._food_xy = np.zeros((0, 2), dtype=int)
        return self._food_xy

    # ----- agents -----

    def add_agent(self, agent: Agent):
        self.agents[agent.id] = agent
        self.births += 1
        self.lineage.setdefault(agent.id, tuple(agent.parents))

    def extend_lineage(self, agent_id: int, parent_id: int):
        # append-only: earlier parent ids are never rewritten
        self.lineage[agent_id] = self.lineage.get(agent_id, ()) + (parent_id,)

    def remove_agent(self, agent: Agent, cause: str):
        agent.alive = False
        self.agents.pop(agent.id, None)
        self.leave_group(agent)
        if cause == "merge":
            self.merges += 1
        else:
            self.deaths += 1
            self.total_age_at_death += agent.age

    def begin_tick(self):
        self.tick += 1
        self.newborns.clear()
        self.bred.clear()

    def flush_newborns(self) -> int:
        n = len(self.newborns)
        for child in self.newborns:
            self.add_agent(child)
        self.newborns.clear()
        return n

    # ----- social groups (extended model) -----

    def form_group(self, a: Agent, b: Agent) -> SocialGroup:
        gid = self.next_group_id
        self.next_group_id += 1
        group = SocialGroup(id=gid, members=[a.id, b.id])
        self.groups[gid] = group
        a.group_id = gid
        b.group_id = gid
        return group

    def join_group(self, agent: Agent, gid: int):
        group = self.groups.get(gid)
        if group is None:
            return
        group.members.append(agent.id)
        agent.group_id = gid

    def leave_group(self, agent: Agent):
        if agent.group_id is None:
            return
        group = self.groups.get(agent.group_id)
        agent.group_id = None
        if group is None:
            return
        if agent.id in group.members:
            group.members.remove(agent.id)
        if not group.members:
            del self.groups[group.id]

    # ----- event log -----

    def log_event(self, etype: str, actor: Agent, target: Optional[Agent] = None,
                  message: str = "", value: Optional[float] = None):
        ev = Event(
            type=etype,
            tick=self.tick,
            actor_id=actor.id,
            actor_sex=actor.sex,
            target_id=target.id if target is not None else None,
            message=message,
            value=value,
        )
        self.events.append(ev)
        log.debug("[tick %d] %s %s", self.tick, etype.upper(), message)

    # ----- metrics -----

    def metrics(self) -> Dict[str, float]:
        agents = list(self.agents.values())
        n = len(agents)
        return {
            "population": n,
            "avg_energy": float(np.mean([a.energy for a in agents])) if n else 0.0,
            "avg_aggression": float(np.mean([a.traits.aggression for a in agents])) if n else 0.0,
            "births": self.births,
            "deaths": self.deaths,
            "avg_life": self.total_age_at_death / self.deaths if self.deaths else 0.0,
            "merges": self.merges,
            "foods": len(self.foods),
            "tick": self.tick,
        }
