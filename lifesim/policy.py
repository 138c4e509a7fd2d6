"""Movement policies.

Every agent carries one ``Policy`` instance. The lifecycle driver only talks
to the interface below, so the three learners are interchangeable:

* ``ActorCriticPolicy``  linear softmax actor + linear critic over the
  continuous feature vector, with a food-seeking bias on the logits.
* ``QLearningPolicy``    epsilon-greedy tabular Q-learning over ``StateKey``.
* ``PhysioQPolicy``      tabular learner for the extended physiological model
  (fatigue / hunger / stress, social groups, adaptive epsilon and alpha).
"""
import math
from typing import Dict, NamedTuple, Optional

import numpy as np

from .config import CFG
from .perception import StateKey, features, food_bias, physio_state_key, state_key
from .utils import N_ACTIONS

N_FEATURES = 5

# extended model: behaviour adapts to age, energy and experience
YOUNG_AGE, OLD_AGE = 50, 200
YOUNG_EPSILON, OLD_EPSILON, HUNGRY_EPSILON = 0.3, 0.05, 0.1
HUNGRY_ENERGY = 30.0
EXPERIENCED = 10
BIG_REWARD, GOOD_REWARD = 0.5, 0.3
FAST_DECAY, SLOW_DECAY = 0.995, 0.999
HIGH_ALPHA, LOW_ALPHA = 0.15, 0.05


class Baseline(NamedTuple):
    """Agent counters captured before it moves; the reward is the difference."""
    energy: float
    kills: int
    repro: int
    dist: float


def baseline_of(agent, dist: float) -> Baseline:
    return Baseline(agent.energy, agent.experience["kills"], agent.experience["repro"], dist)


class Policy:
    extended = False

    def __init__(self, cfg: CFG, rng: np.random.Generator):
        self.cfg = cfg
        self.rng = rng

    def perceive(self, agent, world):
        raise NotImplementedError

    def choose_action(self, state) -> int:
        raise NotImplementedError

    def update(self, state, action: int, reward: float, next_state):
        raise NotImplementedError

    def blend(self, other: "Policy", noise: float, discount: float = 1.0) -> "Policy":
        """Policy for a child of ``self`` and ``other``."""
        raise NotImplementedError

    def absorb(self, other: "Policy", wa: float, wb: float):
        """Fold ``other`` into ``self`` with energy weights ``wa``/``wb``."""
        raise NotImplementedError

    def end_tick(self, agent, reward: float):
        pass

    def share(self, other: "Policy", discount: float):
        pass

    def reward(self, agent, before: Baseline, new_dist: float, ate: bool) -> float:
        cfg = self.cfg
        exp = agent.experience
        r = agent.energy - before.energy
        r += (exp["kills"] - before.kills) * cfg.KILL_REWARD
        r += (exp["repro"] - before.repro) * cfg.REPRO_REWARD
        shaping = before.dist - new_dist
        if ate:
            shaping += cfg.EAT_BONUS
        return r + shaping * cfg.FOOD_DIST_WEIGHT


# ---------------------------------------------------------------------------
# Actor-critic
# ---------------------------------------------------------------------------

class ACState(NamedTuple):
    features: np.ndarray
    bias: np.ndarray


def softmax(x: np.ndarray) -> np.ndarray:
    e = np.exp(x - np.max(x))
    return e / e.sum()


class ActorCriticPolicy(Policy):
    def __init__(self, cfg: CFG, rng: np.random.Generator,
                 weights: Optional[np.ndarray] = None, critic: Optional[np.ndarray] = None):
        super().__init__(cfg, rng)
        if weights is None:
            weights = rng.normal(0.0, cfg.AC_INIT_SIGMA, size=(N_ACTIONS, N_FEATURES))
        if critic is None:
            critic = np.zeros(N_FEATURES)
        self.weights = weights
        self.critic = critic
        self.lr = cfg.AC_LR
        self.critic_lr = cfg.AC_CRITIC_LR
        self.gamma = cfg.AC_GAMMA
        self.entropy_beta = cfg.AC_ENTROPY_BETA
        self.adv_clip = cfg.AC_ADV_CLIP
        # running reward statistics for normalisation
        self.r_alpha = cfg.AC_REWARD_ALPHA
        self.r_eps = cfg.AC_REWARD_EPS
        self.r_mean = 0.0
        self.r_var = 0.0

    def perceive(self, agent, world) -> ACState:
        return ACState(features(world, agent), food_bias(world, agent, self.cfg.AC_HEURISTIC_SCALE))

    def probabilities(self, state: ACState) -> np.ndarray:
        return softmax(self.weights @ state.features + state.bias)

    def choose_action(self, state: ACState) -> int:
        probs = self.probabilities(state)
        r = self.rng.random()
        act = int(np.searchsorted(np.cumsum(probs), r))
        return min(act, N_ACTIONS - 1)

    def update(self, state: ACState, action: int, reward: float, next_state: ACState) -> float:
        f = state.features
        probs = self.probabilities(state)

        a = self.r_alpha
        self.r_mean = (1.0 - a) * self.r_mean + a * reward
        diff = reward - self.r_mean
        self.r_var = (1.0 - a) * self.r_var + a * diff * diff
        r_hat = diff / (math.sqrt(self.r_var) + self.r_eps)

        v = float(self.critic @ f)
        v_next = float(self.critic @ next_state.features)
        delta = float(np.clip(r_hat + self.gamma * v_next - v, -self.adv_clip, self.adv_clip))

        self.critic += self.critic_lr * delta * f

        taken = np.zeros(N_ACTIONS)
        taken[action] = 1.0
        grad = (taken - probs) * delta
        if self.entropy_beta > 0:
            safe = np.maximum(probs, 1e-300)
            grad += self.entropy_beta * np.where(probs > 0, -(np.log(safe) + 1.0) * probs, 0.0)
        self.weights += self.lr * np.outer(grad, f)
        return delta

    def blend(self, other: "ActorCriticPolicy", noise: float, discount: float = 1.0) -> "ActorCriticPolicy":
        rng = self.rng
        child = ActorCriticPolicy(
            self.cfg, rng,
            weights=(self.weights + other.weights) / 2 + rng.normal(0.0, noise, size=self.weights.shape),
            critic=(self.critic + other.critic) / 2 + rng.normal(0.0, noise, size=self.critic.shape),
        )
        child.lr = (self.lr + other.lr) / 2
        child.critic_lr = (self.critic_lr + other.critic_lr) / 2
        return child

    def absorb(self, other: "ActorCriticPolicy", wa: float, wb: float):
        self.weights = self.weights * wa + other.weights * wb
        self.critic = self.critic * wa + other.critic * wb
        self.r_mean = self.r_mean * wa + other.r_mean * wb
        self.r_var = self.r_var * wa + other.r_var * wb


# ---------------------------------------------------------------------------
# Tabular Q-learning
# ---------------------------------------------------------------------------

class QLearningPolicy(Policy):
    def __init__(self, cfg: CFG, rng: np.random.Generator,
                 table: Optional[Dict[StateKey, np.ndarray]] = None,
                 epsilon: Optional[float] = None, alpha: Optional[float] = None,
                 gamma: Optional[float] = None):
        super().__init__(cfg, rng)
        self.table: Dict[StateKey, np.ndarray] = table if table is not None else {}
        self.epsilon = cfg.Q_EPSILON if epsilon is None else epsilon
        self.alpha = cfg.Q_ALPHA if alpha is None else alpha
        self.gamma = cfg.Q_GAMMA if gamma is None else gamma
        self.init_range = cfg.Q_INIT_RANGE

    def perceive(self, agent, world) -> StateKey:
        return state_key(world, agent)

    def values(self, state: StateKey) -> np.ndarray:
        q = self.table.get(state)
        if q is None:
            if self.init_range > 0:
                q = self.rng.uniform(-self.init_range, self.init_range, size=N_ACTIONS)
            else:
                q = np.zeros(N_ACTIONS)
            self.table[state] = q
        return q

    def choose_action(self, state: StateKey) -> int:
        if self.rng.random() < self.epsilon:
            return int(self.rng.integers(0, N_ACTIONS))
        # argmax returns the first maximum: ties go to the lowest action index
        return int(np.argmax(self.values(state)))

    def update(self, state: StateKey, action: int, reward: float, next_state: StateKey) -> float:
        best_next = float(self.values(next_state).max())
        q = self.values(state)
        q[action] += self.alpha * (reward + self.gamma * best_next - q[action])
        return float(q[action])

    def end_tick(self, agent, reward: float):
        self.epsilon = max(self.cfg.Q_EPSILON_MIN, self.epsilon * self.cfg.Q_EPSILON_DECAY)

    def reward(self, agent, before: Baseline, new_dist: float, ate: bool) -> float:
        r = super().reward(agent, before, new_dist, ate)
        if agent.energy > self.cfg.WELL_FED_ENERGY:
            r += self.cfg.WELL_FED_BONUS
        return r

    def _new(self, table, epsilon, alpha, gamma) -> "QLearningPolicy":
        return type(self)(self.cfg, self.rng, table=table, epsilon=epsilon, alpha=alpha, gamma=gamma)

    def blend(self, other: "QLearningPolicy", noise: float, discount: float = 1.0) -> "QLearningPolicy":
        rng = self.rng
        table: Dict[StateKey, np.ndarray] = {}
        for s, q in self.table.items():
            o = other.table.get(s)
            base = q * discount if o is None else (q + o) / 2
            table[s] = base + rng.normal(0.0, noise, size=N_ACTIONS)
        for s, o in other.table.items():
            if s not in table:
                table[s] = o * discount + rng.normal(0.0, noise, size=N_ACTIONS)
        return self._new(
            table,
            (self.epsilon + other.epsilon) / 2,
            (self.alpha + other.alpha) / 2,
            (self.gamma + other.gamma) / 2,
        )

    def absorb(self, other: "QLearningPolicy", wa: float, wb: float):
        for s, o in other.table.items():
            q = self.table.get(s)
            self.table[s] = o.copy() if q is None else q * wa + o * wb
        self.epsilon = self.epsilon * wa + other.epsilon * wb
        self.alpha = self.alpha * wa + other.alpha * wb
        self.gamma = self.gamma * wa + other.gamma * wb


class PhysioQPolicy(QLearningPolicy):
    extended = True

    def __init__(self, cfg: CFG, rng: np.random.Generator,
                 table: Optional[Dict[StateKey, np.ndarray]] = None,
                 epsilon: Optional[float] = None, alpha: Optional[float] = None,
                 gamma: Optional[float] = None):
        super().__init__(
            cfg, rng, table=table,
            epsilon=cfg.PHYSIO_EPSILON if epsilon is None else epsilon,
            alpha=cfg.PHYSIO_ALPHA if alpha is None else alpha,
            gamma=cfg.PHYSIO_GAMMA if gamma is None else gamma,
        )
        self.init_range = 0.0

    def perceive(self, agent, world) -> StateKey:
        self.adapt(agent)
        return physio_state_key(world, agent)

    def adapt(self, agent):
        if agent.age < YOUNG_AGE:
            self.epsilon = YOUNG_EPSILON
        elif agent.age > OLD_AGE:
            self.epsilon = OLD_EPSILON
        if agent.energy < HUNGRY_ENERGY:
            self.epsilon = HUNGRY_EPSILON
        if sum(agent.experience.values()) > EXPERIENCED:
            self.alpha = HIGH_ALPHA

    def end_tick(self, agent, reward: float):
        decay = FAST_DECAY if reward > BIG_REWARD else SLOW_DECAY
        self.epsilon = max(self.cfg.Q_EPSILON_MIN, self.epsilon * decay)
        self.alpha = HIGH_ALPHA if reward > GOOD_REWARD else LOW_ALPHA

    def reward(self, agent, before: Baseline, new_dist: float, ate: bool) -> float:
        cfg = self.cfg
        v = agent.vitals
        r = Policy.reward(self, agent, before, new_dist, ate)
        r += agent.age * cfg.AGE_REWARD
        if agent.group_id is not None:
            r += cfg.GROUP_BONUS
        r -= (v.fatigue + v.hunger + v.stress) * cfg.VITALS_PENALTY
        return r

    def share(self, other: "PhysioQPolicy", discount: float):
        """Group mates copy each other's unseen states at a discount."""
        mine = list(self.table.items())
        for s, q in other.table.items():
            if s not in self.table:
                self.table[s] = q * discount
        for s, q in mine:
            if s not in other.table:
                other.table[s] = q * discount


POLICIES = {
    "actor_critic": ActorCriticPolicy,
    "qlearning": QLearningPolicy,
    "physio": PhysioQPolicy,
}


def make_policy(cfg: CFG, rng: np.random.Generator) -> Policy:
    try:
        cls = POLICIES[cfg.MODEL]
    except KeyError:
        raise ValueError(f"unknown model {cfg.MODEL!r}, expected one of {sorted(POLICIES)}") from None
    return cls(cfg, rng)
