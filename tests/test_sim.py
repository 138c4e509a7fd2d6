import pytest

from lifesim.config import CFG
from lifesim.entities import FEMALE, MALE
from lifesim.sim import Sim, SimulationLockError


def test_reproduction_scenario(freeze):
    sim = Sim(CFG(W=100, H=100, SEED=1, N0=0, RANDOM_FOOD=False))
    a = sim.add_agent_at(0, 0, energy=100, sex=MALE, reproduction=1.0)
    b = sim.add_agent_at(1, 0, energy=100, sex=FEMALE, reproduction=1.0)
    freeze(sim)

    sim.tick()

    world = sim.world
    children = [ag for aid, ag in world.agents.items() if aid not in (a, b)]
    assert len(children) == 1
    child = children[0]
    assert child.parents == [a, b]
    assert child.age == 0
    assert world.lineage[child.id] == (a, b)
    assert world.agents[a].energy < 100
    assert world.agents[b].energy < 100


def test_starvation_scenario(sim):
    aid = sim.add_agent_at(5, 5, energy=0.05)
    assert aid is not None
    sim.tick()
    assert aid not in sim.world.agents
    assert sim.world.deaths == 1
    assert sim.world.events[-1].type == "death"


def test_food_on_agent_cell_is_eaten(sim, freeze):
    assert sim.add_food_at(10, 10, 12)
    aid = sim.add_agent_at(10, 10, energy=50)
    freeze(sim)
    sim.tick()
    agent = sim.world.agents[aid]
    assert agent.energy == pytest.approx(50 - sim.cfg.METABOLISM + 12)
    assert sim.world.food_at(10, 10) is None


def test_undrained_publisher_never_blocks():
    sim = Sim(CFG(W=15, H=15, SEED=3, N0=4, PUBLISH_CAPACITY=1))
    for _ in range(50):
        sim.tick()
    assert sim.world.tick == 50
    assert sim.publisher.published == 1
    assert sim.publisher.dropped == 49
    assert sim.publisher.poll().tick == 1


def test_add_agent_clamps_traits_and_rejects_bad_requests(sim):
    assert sim.add_agent_at(-1, 0) is None
    assert sim.add_agent_at(0, sim.cfg.H) is None
    assert sim.add_agent_at(0, 0, energy=0) is None

    aid = sim.add_agent_at(0, 0, aggression=5, speed=9, strength=-3, reproduction=-1)
    t = sim.world.agents[aid].traits
    assert (t.aggression, t.speed, t.strength, t.reproduction) == (1.0, 5, 0.0, 0.0)


def test_add_agent_rejects_non_finite_energy(sim, freeze):
    assert sim.add_agent_at(5, 5, energy=float("nan")) is None
    assert sim.add_agent_at(5, 5, energy=float("inf")) is None
    aid = sim.add_agent_at(6, 6, energy=50)
    freeze(sim)
    for _ in range(3):
        sim.tick()
    assert list(sim.world.agents) == [aid]
    assert all(a.energy > 0 for a in sim.world.agents.values())


def test_add_food_rejects_non_positive_energy(sim):
    assert not sim.add_food_at(3, 3, -50)
    assert not sim.add_food_at(4, 4, 0)
    assert not sim.add_food_at(5, 5, float("nan"))
    assert not sim.world.foods


def test_add_agent_defaults(sim):
    cfg = sim.cfg
    a = sim.world.agents[sim.add_agent_at(3, 3)]
    assert a.energy == cfg.PLACE_ENERGY
    assert a.sex == cfg.PLACE_SEX
    assert a.traits.speed == cfg.PLACE_SPEED
    assert a.traits.reproduction == cfg.PLACE_REPRO


def test_add_food_rejects_occupied(sim):
    sim.add_agent_at(1, 1)
    assert not sim.add_food_at(1, 1)
    assert sim.add_food_at(2, 1)
    assert not sim.add_food_at(2, 1)
    assert sim.world.food_at(2, 1).energy == sim.cfg.DEFAULT_FOOD_ENERGY


def test_toggle_random_food():
    sim = Sim(CFG(W=15, H=15, SEED=2, N0=0, RANDOM_FOOD=True, RANDOM_FOOD_PROB=1.0))
    sim.set_random_food_enabled(False)
    sim.tick()
    assert not sim.world.foods
    sim.set_random_food_enabled(True)
    sim.tick()
    assert sim.world.foods


def test_lock_timeout_raises():
    sim = Sim(CFG(N0=0, LOCK_TIMEOUT=0.05))
    sim._lock.acquire()
    try:
        with pytest.raises(SimulationLockError):
            sim.add_food_at(1, 1)
        with pytest.raises(SimulationLockError):
            sim.tick()
    finally:
        sim._lock.release()


@pytest.mark.parametrize("model", ["actor_critic", "qlearning", "physio"])
def test_population_accounting_and_positive_energy(model):
    sim = Sim(CFG(W=12, H=12, SEED=11, N0=16, MODEL=model, RANDOM_FOOD_PROB=0.3,
                  MERGE_BASE_PROB=0.5, INIT_REPRO=(0.6, 0.9)))
    world = sim.world
    for _ in range(60):
        pop = len(world.agents)
        births, deaths, merges = world.births, world.deaths, world.merges
        sim.tick()
        assert len(world.agents) == (pop - (world.deaths - deaths)
                                     - (world.merges - merges) + (world.births - births))
        assert all(a.energy > 0 for a in world.agents.values())
        assert all(a.alive for a in world.agents.values())
        assert len(world.events) <= sim.cfg.EVENT_LOG_CAP


def test_ids_never_reused():
    sim = Sim(CFG(W=10, H=10, SEED=5, N0=12, INIT_REPRO=(0.8, 1.0)))
    seen = set(sim.world.agents)
    for _ in range(40):
        before = set(sim.world.agents)
        sim.tick()
        new = set(sim.world.agents) - before
        assert not new & seen
        seen |= new


def test_seeded_runs_are_reproducible():
    def run():
        sim = Sim(CFG(W=15, H=15, SEED=42, N0=10))
        snap = None
        for _ in range(30):
            snap = sim.tick()
        return snap.to_message()

    assert run() == run()


def test_metrics_history(sim):
    for _ in range(3):
        sim.tick()
    assert sim.metric_ticks == [1, 2, 3]
    assert len(sim.series["population"]) == 3


def test_extended_model_raises_vitals(freeze):
    sim = Sim(CFG(W=10, H=10, SEED=4, N0=0, MODEL="physio", RANDOM_FOOD=False))
    aid = sim.add_agent_at(5, 5, energy=100)
    freeze(sim)
    sim.tick()
    v = sim.world.agents[aid].vitals
    assert v.fatigue > 0 and v.hunger > 0 and v.stress > 0
    assert v.health < 100
