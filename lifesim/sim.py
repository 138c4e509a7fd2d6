import logging
import math
import threading
from contextlib import contextmanager
from typing import Dict, List, Optional

import numpy as np

from . import interactions
from .config import CFG
from .entities import FEMALE, MALE, Agent, Traits
from .perception import distance_to_nearest_food
from .policy import baseline_of, make_policy
from .snapshot import Publisher, Snapshot, build_snapshot, config_message
from .utils import clamp, clamp_int, decode_action
from .world import World

log = logging.getLogger(__name__)


class SimulationLockError(RuntimeError):
    """The world lock could not be taken in time: something holds it forever."""


class Sim:
    def __init__(self, cfg: CFG, publisher: Optional[Publisher] = None):
        self.cfg = cfg
        self.rng = np.random.default_rng(cfg.SEED)
        self.world = World(cfg, self.rng)
        self.publisher = publisher if publisher is not None else Publisher(cfg.PUBLISH_CAPACITY)
        self._lock = threading.Lock()

        # Metrics
        self.metric_ticks: List[int] = []
        self.series: Dict[str, List[float]] = {k: [] for k in
            ["population", "avg_energy", "avg_aggression", "births", "deaths", "avg_life"]}

        self._init_agents()

    @contextmanager
    def locked(self):
        """The single serialization boundary around world state."""
        if not self._lock.acquire(timeout=self.cfg.LOCK_TIMEOUT):
            raise SimulationLockError(f"world lock not acquired within {self.cfg.LOCK_TIMEOUT}s")
        try:
            yield self.world
        finally:
            self._lock.release()

    # ----- initialization -----

    def _init_agents(self):
        cfg = self.cfg
        rng = self.rng
        for _ in range(cfg.N0):
            a = self._new_agent(
                x=int(rng.integers(0, cfg.W)),
                y=int(rng.integers(0, cfg.H)),
                energy=float(rng.uniform(*cfg.INIT_ENERGY)),
                sex=MALE if rng.integers(0, 2) == 0 else FEMALE,
                traits=self._random_traits(),
            )
            self.world.add_agent(a)
            log.debug("[0] SPAWN id=%d pos=(%d,%d) sex=%s traits=%s", a.id, a.x, a.y, a.sex, vars(a.traits))

    def _random_traits(self) -> Traits:
        cfg = self.cfg
        rng = self.rng
        return Traits(
            aggression=float(rng.uniform(*cfg.AGGRESSION_RANGE)),
            speed=int(rng.integers(cfg.INIT_SPEED[0], cfg.INIT_SPEED[1] + 1)),
            strength=float(rng.uniform(*cfg.INIT_STRENGTH)),
            reproduction=float(rng.uniform(*cfg.INIT_REPRO)),
        )

    def _new_agent(self, x: int, y: int, energy: float, sex: str, traits: Traits) -> Agent:
        return Agent(
            id=self.world.claim_id(),
            x=x, y=y,
            energy=energy,
            sex=sex,
            traits=traits,
            policy=make_policy(self.cfg, self.rng),
        )

    # ----- control surface -----

    def add_food_at(self, x: int, y: int, energy: Optional[float] = None) -> bool:
        if energy is None:
            energy = self.cfg.DEFAULT_FOOD_ENERGY
        with self.locked() as world:
            return world.place_food(x, y, energy)

    def add_agent_at(self, x: int, y: int, energy: Optional[float] = None, sex: Optional[str] = None,
                     aggression: Optional[float] = None, speed: Optional[int] = None,
                     strength: Optional[float] = None, reproduction: Optional[float] = None) -> Optional[int]:
        """Place a new agent; returns its id, or None when the request is ignored."""
        cfg = self.cfg
        energy = cfg.PLACE_ENERGY if energy is None else energy
        sex = cfg.PLACE_SEX if sex is None else sex
        traits = Traits(
            aggression=clamp(cfg.PLACE_AGGRESSION if aggression is None else aggression, *cfg.AGGRESSION_RANGE),
            speed=clamp_int(int(cfg.PLACE_SPEED if speed is None else speed), *cfg.SPEED_RANGE),
            strength=clamp(cfg.PLACE_STRENGTH if strength is None else strength, *cfg.STRENGTH_RANGE),
            reproduction=clamp(cfg.PLACE_REPRO if reproduction is None else reproduction, *cfg.REPRO_RANGE),
        )
        with self.locked() as world:
            if not world.in_bounds(x, y) or not math.isfinite(energy) or energy <= 0:
                return None
            a = self._new_agent(x, y, float(energy), FEMALE if sex == FEMALE else MALE, traits)
            world.add_agent(a)
            log.debug("[tick %d] PLACE id=%d pos=(%d,%d) sex=%s energy=%.1f", world.tick, a.id, x, y, a.sex, a.energy)
            return a.id

    def set_random_food_enabled(self, enabled: bool):
        with self.locked() as world:
            world.random_food = bool(enabled)

    def config_message(self) -> dict:
        return config_message(self.cfg.W, self.cfg.H)

    def snapshot(self) -> Snapshot:
        with self.locked() as world:
            return build_snapshot(world)

    # ----- per-tick mechanics -----

    def tick(self) -> Snapshot:
        with self.locked() as world:
            self._step()
            snap = build_snapshot(world)
        self.publisher.offer(snap)
        return snap

    def _step(self):
        world = self.world
        world.begin_tick()
        world.spawn_food()

        for aid in sorted(world.agents):
            agent = world.agents.get(aid)
            if agent is None:
                continue  # killed or merged away earlier this tick
            agent.age += 1
            self._metabolize(agent)
            if agent.energy <= 0:
                world.log_event("death", agent, None,
                                f"agent {agent.id} ({agent.sex}) starved at age {agent.age}")
                world.remove_agent(agent, "starvation")
                continue
            self._act(agent)

        self._cull()
        world.flush_newborns()
        if world.tick % self.cfg.METRICS_EVERY == 0:
            self._record_metrics()

    def _metabolize(self, agent: Agent):
        cfg = self.cfg
        v = agent.vitals
        agent.energy -= cfg.METABOLISM
        if cfg.extended:
            rng = self.rng
            v.fatigue = min(cfg.VITALS_MAX, v.fatigue + rng.uniform(*cfg.FATIGUE_RATE))
            v.hunger = min(cfg.VITALS_MAX, v.hunger + rng.uniform(*cfg.HUNGER_RATE))
            v.stress = min(cfg.VITALS_MAX, v.stress + rng.uniform(*cfg.STRESS_RATE))
            v.health = max(0.0, v.health - (v.fatigue + v.hunger + v.stress) * cfg.HEALTH_LOSS_RATE)
            if v.health <= 0:
                agent.energy -= cfg.EXHAUSTION_DRAIN
        else:
            v.hunger += 1
            if v.hunger > cfg.HUNGER_LIMIT:
                agent.energy -= cfg.HUNGER_DRAIN

    def _act(self, agent: Agent):
        world = self.world
        policy = agent.policy

        before = baseline_of(agent, distance_to_nearest_food(world, agent.x, agent.y))
        state = policy.perceive(agent, world)
        action = policy.choose_action(state)
        agent.last_action = action

        dx, dy = decode_action(action)
        agent.x = clamp_int(agent.x + dx, 0, world.W - 1)
        agent.y = clamp_int(agent.y + dy, 0, world.H - 1)
        new_dist = distance_to_nearest_food(world, agent.x, agent.y)

        ate = interactions.resolve(world, agent)
        if not agent.alive:
            return

        reward = policy.reward(agent, before, new_dist, ate)
        next_state = policy.perceive(agent, world)
        policy.update(state, action, reward, next_state)
        policy.end_tick(agent, reward)

    def _cull(self):
        world = self.world
        for agent in [a for a in world.agents.values() if a.energy <= 0]:
            world.log_event("death", agent, None, f"agent {agent.id} ({agent.sex}) died at age {agent.age}")
            world.remove_agent(agent, "exhaustion")

    # ----- metrics -----

    def _record_metrics(self):
        m = self.world.metrics()
        self.metric_ticks.append(self.world.tick)
        for k in self.series:
            self.series[k].append(float(m[k]))
