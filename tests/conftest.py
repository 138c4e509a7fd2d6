import numpy as np
import pytest

from lifesim.config import CFG
from lifesim.entities import MALE, Agent, Traits
from lifesim.policy import Policy
from lifesim.sim import Sim
from lifesim.utils import STAY
from lifesim.world import World


class StayPolicy(Policy):
    """Never moves and never learns; keeps scenario tests independent of policy sampling."""

    def perceive(self, agent, world):
        return None

    def choose_action(self, state) -> int:
        return STAY

    def update(self, state, action, reward, next_state):
        return 0.0

    def blend(self, other, noise, discount=1.0):
        return StayPolicy(self.cfg, self.rng)

    def absorb(self, other, wa, wb):
        pass


@pytest.fixture
def cfg():
    return CFG(W=20, H=20, SEED=7, N0=0, RANDOM_FOOD=False)


@pytest.fixture
def world(cfg):
    return World(cfg, np.random.default_rng(cfg.SEED))


@pytest.fixture
def sim(cfg):
    return Sim(cfg)


@pytest.fixture
def spawn():
    """Register a hand-built agent carrying a StayPolicy."""

    def _spawn(world, x, y, energy=100.0, sex=MALE, aggression=0.5, speed=1,
               strength=5.0, reproduction=0.0):
        agent = Agent(
            id=world.claim_id(),
            x=x, y=y,
            energy=energy,
            sex=sex,
            traits=Traits(aggression=aggression, speed=speed, strength=strength, reproduction=reproduction),
            policy=StayPolicy(world.cfg, world.rng),
        )
        world.add_agent(agent)
        return agent

    return _spawn


@pytest.fixture
def freeze():
    """Swap the policy of every agent in ``sim`` for a StayPolicy."""

    def _freeze(sim):
        for a in sim.world.agents.values():
            a.policy = StayPolicy(sim.cfg, sim.rng)

    return _freeze
