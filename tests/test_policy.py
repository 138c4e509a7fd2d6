import numpy as np
import pytest

from lifesim.config import CFG
from lifesim.perception import StateKey
from lifesim.policy import (ACState, ActorCriticPolicy, PhysioQPolicy, Policy, QLearningPolicy,
                            baseline_of, make_policy)
from lifesim.utils import N_ACTIONS

S0 = StateKey(food_dir=1, food_dist=2, energy=3, threat=0, nearby=0)
S1 = StateKey(food_dir=4, food_dist=4, energy=3, threat=1, nearby=1)


@pytest.fixture
def rng():
    return np.random.default_rng(0)


def ac_state(rng):
    return ACState(np.array([1.0, 0.1, -0.2, 0.5, 0.0]), rng.normal(size=N_ACTIONS))


def test_make_policy_by_model(rng):
    assert isinstance(make_policy(CFG(MODEL="actor_critic"), rng), ActorCriticPolicy)
    assert isinstance(make_policy(CFG(MODEL="qlearning"), rng), QLearningPolicy)
    assert isinstance(make_policy(CFG(MODEL="physio"), rng), PhysioQPolicy)
    with pytest.raises(ValueError):
        make_policy(CFG(MODEL="nope"), rng)


def test_base_policy_is_abstract(rng):
    p = Policy(CFG(), rng)
    with pytest.raises(NotImplementedError):
        p.choose_action(S0)
    with pytest.raises(NotImplementedError):
        p.update(S0, 0, 1.0, S1)


def test_q_update_with_zero_alpha_is_noop(rng):
    p = QLearningPolicy(CFG(), rng, alpha=0.0)
    before = p.values(S0).copy()
    p.update(S0, 3, 1000.0, S1)
    np.testing.assert_array_equal(p.values(S0), before)


def test_q_update_formula(rng):
    cfg = CFG(Q_INIT_RANGE=0.0)
    p = QLearningPolicy(cfg, rng, alpha=0.5, gamma=0.9)
    p.values(S1)[2] = 2.0
    p.update(S0, 0, 1.0, S1)
    assert p.values(S0)[0] == pytest.approx(0.5 * (1.0 + 0.9 * 2.0))


def test_q_lazy_init_within_range(rng):
    p = QLearningPolicy(CFG(Q_INIT_RANGE=0.05), rng)
    q = p.values(S0)
    assert q.shape == (N_ACTIONS,)
    assert np.all(np.abs(q) <= 0.05)
    assert p.values(S0) is q


def test_greedy_ties_pick_lowest_index(rng):
    p = QLearningPolicy(CFG(Q_INIT_RANGE=0.0), rng, epsilon=0.0)
    assert p.choose_action(S0) == 0
    p.values(S0)[[3, 7]] = 1.0
    assert p.choose_action(S0) == 3


def test_epsilon_decays_to_floor(rng):
    cfg = CFG()
    p = QLearningPolicy(cfg, rng, epsilon=0.02)
    for _ in range(5000):
        p.end_tick(None, 0.0)
    assert p.epsilon == pytest.approx(cfg.Q_EPSILON_MIN)


def test_q_blend_carries_single_parent_entries(rng):
    cfg = CFG(Q_INIT_RANGE=0.0)
    a = QLearningPolicy(cfg, rng, epsilon=0.2, alpha=0.1)
    b = QLearningPolicy(cfg, rng, epsilon=0.4, alpha=0.3)
    a.values(S0)[:] = 2.0
    b.values(S0)[:] = 4.0
    b.values(S1)[:] = 1.0
    child = a.blend(b, noise=0.0, discount=0.5)
    np.testing.assert_allclose(child.table[S0], 3.0)
    np.testing.assert_allclose(child.table[S1], 0.5)
    assert child.epsilon == pytest.approx(0.3)
    assert child.alpha == pytest.approx(0.2)
    assert child.table[S0] is not a.table[S0]


def test_q_absorb_weights_shared_and_copies_unique_entries(rng):
    cfg = CFG(Q_INIT_RANGE=0.0)
    a = QLearningPolicy(cfg, rng)
    b = QLearningPolicy(cfg, rng)
    a.values(S0)[:] = 1.0
    b.values(S0)[:] = 3.0
    b.values(S1)[:] = 7.0
    a.absorb(b, 0.75, 0.25)
    np.testing.assert_allclose(a.table[S0], 1.5)
    np.testing.assert_allclose(a.table[S1], 7.0)


def test_ac_update_with_zero_lr_keeps_weights(rng):
    p = ActorCriticPolicy(CFG(AC_LR=0.0), rng)
    before = p.weights.copy()
    for r in (5.0, -3.0, 100.0):
        p.update(ac_state(rng), 2, r, ac_state(rng))
    np.testing.assert_array_equal(p.weights, before)


def test_ac_update_moves_weights_and_clips_delta(rng):
    p = ActorCriticPolicy(CFG(), rng)
    before = p.weights.copy()
    delta = p.update(ac_state(rng), 2, 50.0, ac_state(rng))
    assert abs(delta) <= p.adv_clip
    assert not np.array_equal(p.weights, before)


def test_ac_probabilities_and_sampling(rng):
    p = ActorCriticPolicy(CFG(), rng)
    s = ac_state(rng)
    probs = p.probabilities(s)
    assert probs.sum() == pytest.approx(1.0)
    assert all(0 <= p.choose_action(s) < N_ACTIONS for _ in range(100))


def test_ac_food_bias_dominates_choice(rng):
    p = ActorCriticPolicy(CFG(), rng)
    bias = np.full(N_ACTIONS, -50.0)
    bias[5] = 50.0
    s = ACState(np.array([1.0, 0.0, 0.0, 0.5, 0.0]), bias)
    assert p.choose_action(s) == 5


def test_ac_blend_averages_parents(rng):
    cfg = CFG()
    a = ActorCriticPolicy(cfg, rng)
    b = ActorCriticPolicy(cfg, rng)
    child = a.blend(b, noise=0.0)
    np.testing.assert_allclose(child.weights, (a.weights + b.weights) / 2)
    np.testing.assert_allclose(child.critic, (a.critic + b.critic) / 2)


def test_reward_contract(spawn, world):
    cfg = world.cfg
    a = spawn(world, 0, 0, energy=50)
    before = baseline_of(a, 10.0)
    a.energy += 4
    a.experience["kills"] += 1
    r = QLearningPolicy(cfg, world.rng).reward(a, before, 8.0, ate=False)
    expected = 4 + cfg.KILL_REWARD + 2 * cfg.FOOD_DIST_WEIGHT + cfg.WELL_FED_BONUS
    assert r == pytest.approx(expected)


def test_physio_reward_penalises_vitals(spawn, world):
    cfg = world.cfg
    a = spawn(world, 0, 0, energy=50)
    before = baseline_of(a, 5.0)
    a.vitals.fatigue = a.vitals.hunger = a.vitals.stress = 100
    p = PhysioQPolicy(cfg, world.rng)
    base = Policy.reward(p, a, before, 5.0, False)
    assert p.reward(a, before, 5.0, False) == pytest.approx(base - 300 * cfg.VITALS_PENALTY)


def test_physio_share_copies_unseen_states(rng):
    cfg = CFG(MODEL="physio")
    a = PhysioQPolicy(cfg, rng)
    b = PhysioQPolicy(cfg, rng)
    a.values(S0)[:] = 1.0
    b.values(S1)[:] = 2.0
    a.share(b, 0.5)
    np.testing.assert_allclose(a.table[S1], 1.0)
    np.testing.assert_allclose(b.table[S0], 0.5)


def test_physio_adapts_after_reward(rng):
    p = PhysioQPolicy(CFG(MODEL="physio"), rng)
    p.end_tick(None, 1.0)
    assert p.alpha == pytest.approx(0.15)
    p.end_tick(None, 0.0)
    assert p.alpha == pytest.approx(0.05)
