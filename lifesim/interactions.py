"""Feeding, combat, merging, reproduction and (extended model) socialising.

Each ``try_*`` resolves at most one interaction for the acting agent.
Candidates are visited in ascending id order so a seeded run is
reproducible; newborns only join the registry at the end of the tick and so
are never candidates during their birth tick.
"""
import logging
from typing import List

from .entities import FEMALE, MALE, Agent, Traits, Vitals
from .utils import clamp, clamp_int, euclidean, manhattan

log = logging.getLogger(__name__)


def _adjacent(world, agent: Agent) -> List[Agent]:
    near = [o for o in world.agents.values()
            if o.id != agent.id and manhattan(o.x, o.y, agent.x, agent.y) <= 1]
    near.sort(key=lambda o: o.id)
    return near


def feed(world, agent: Agent) -> bool:
    food = world.take_food(agent.x, agent.y)
    if food is None:
        return False
    agent.energy += food.energy
    agent.experience["ate"] += 1
    agent.vitals.hunger = 0.0
    log.debug("[tick %d] FORAGE id=%d pos=(%d,%d) +E=%.1f energy=%.1f",
              world.tick, agent.id, agent.x, agent.y, food.energy, agent.energy)
    return True


def try_attack(world, agent: Agent) -> bool:
    cfg, rng = world.cfg, world.rng
    if agent.sex == FEMALE:
        return False
    for other in _adjacent(world, agent):
        if other.sex != agent.sex:
            continue
        chance = (agent.traits.aggression - other.traits.aggression) \
            + (agent.traits.strength - other.traits.strength) / 10.0 \
            + rng.normal(0.0, cfg.ATTACK_NOISE)
        if chance <= cfg.ATTACK_THRESHOLD:
            continue

        damage = float(rng.uniform(*cfg.ATTACK_DAMAGE))
        other.energy -= damage
        agent.energy += damage * cfg.ENERGY_STEAL
        agent.experience["attacks"] += 1
        world.log_event("attack", agent, other,
                        f"agent {agent.id} ({agent.sex}) attacked {other.id} (damage {damage:.1f})", value=damage)
        if other.energy <= 0:
            world.remove_agent(other, "combat")
            agent.experience["kills"] += 1
            world.log_event("kill", agent, other, f"agent {agent.id} ({agent.sex}) killed {other.id}")
        return True
    return False


def _weighted(a: float, b: float, wa: float, wb: float) -> float:
    return a * wa + b * wb


def merge(world, survivor: Agent, absorbed: Agent):
    """Fold ``absorbed`` into ``survivor``, weighting by pre-merge energy share."""
    cfg = world.cfg
    combined = survivor.energy + absorbed.energy
    wa = survivor.energy / combined
    wb = absorbed.energy / combined
    survivor.energy = combined * cfg.MERGE_COST

    s, o = survivor.traits, absorbed.traits
    survivor.traits = Traits(
        aggression=clamp(_weighted(s.aggression, o.aggression, wa, wb), *cfg.AGGRESSION_RANGE),
        speed=clamp_int(int(round(_weighted(s.speed, o.speed, wa, wb))), *cfg.SPEED_RANGE),
        strength=clamp(_weighted(s.strength, o.strength, wa, wb), *cfg.STRENGTH_RANGE),
        reproduction=clamp(_weighted(s.reproduction, o.reproduction, wa, wb), *cfg.REPRO_RANGE),
    )
    sv, ov = survivor.vitals, absorbed.vitals
    survivor.vitals = Vitals(
        fatigue=_weighted(sv.fatigue, ov.fatigue, wa, wb),
        hunger=_weighted(sv.hunger, ov.hunger, wa, wb),
        stress=_weighted(sv.stress, ov.stress, wa, wb),
        health=_weighted(sv.health, ov.health, wa, wb),
    )
    survivor.experience.update(absorbed.experience)
    survivor.policy.absorb(absorbed.policy, wa, wb)

    survivor.parents.append(absorbed.id)
    world.extend_lineage(survivor.id, absorbed.id)
    world.log_event("merge", survivor, absorbed,
                    f"agent {survivor.id} ({survivor.sex}) merged with {absorbed.id}", value=survivor.energy)
    world.remove_agent(absorbed, "merge")


def try_merge(world, agent: Agent) -> bool:
    cfg, rng = world.cfg, world.rng
    for other in _adjacent(world, agent):
        if other.sex != agent.sex:
            continue
        combined = agent.energy + other.energy
        prob = cfg.MERGE_BASE_PROB + cfg.MERGE_PROB_SCALE * (agent.traits.reproduction + other.traits.reproduction) / 2.0
        if combined <= cfg.MERGE_THRESHOLD or rng.random() >= prob:
            continue
        merge(world, agent, other)
        return True
    return False


def make_child(world, a: Agent, b: Agent) -> Agent:
    cfg, rng = world.cfg, world.rng
    ta, tb = a.traits, b.traits
    traits = Traits(
        aggression=clamp((ta.aggression + tb.aggression) / 2 + rng.normal(0.0, cfg.MUT_AGGRESSION), *cfg.AGGRESSION_RANGE),
        speed=clamp_int(int(round((ta.speed + tb.speed) / 2 + rng.normal(0.0, cfg.MUT_SPEED))), *cfg.SPEED_RANGE),
        strength=clamp((ta.strength + tb.strength) / 2 + rng.normal(0.0, cfg.MUT_STRENGTH), *cfg.STRENGTH_RANGE),
        reproduction=clamp((ta.reproduction + tb.reproduction) / 2 + rng.normal(0.0, cfg.MUT_REPRO), *cfg.REPRO_RANGE),
    )
    child = Agent(
        id=world.claim_id(),
        x=a.x, y=a.y,
        energy=(a.energy + b.energy) * cfg.CHILD_ENERGY_FRAC,
        sex=MALE if rng.random() < 0.5 else FEMALE,
        traits=traits,
        policy=a.policy.blend(b.policy, cfg.POLICY_NOISE, cfg.INHERIT_DISCOUNT),
        parents=[a.id, b.id],
    )
    if cfg.extended and a.group_id is not None:
        world.join_group(child, a.group_id)
    return child


def try_reproduce(world, agent: Agent) -> bool:
    cfg, rng = world.cfg, world.rng
    floor = cfg.REPRO_ENERGY_FLOOR
    if agent.id in world.bred or agent.energy <= floor:
        return False
    for other in _adjacent(world, agent):
        if other.sex == agent.sex or other.id in world.bred or other.energy <= floor:
            continue
        if rng.random() >= (agent.traits.reproduction + other.traits.reproduction) / 2:
            continue

        child = make_child(world, agent, other)
        world.newborns.append(child)
        world.bred.update((agent.id, other.id))
        agent.energy *= cfg.REPRO_PENALTY
        other.energy *= cfg.REPRO_PENALTY
        agent.experience["repro"] += 1
        other.experience["repro"] += 1
        world.log_event("birth", child, None,
                        f"agent {child.id} ({child.sex}) born to {agent.id} and {other.id}")
        return True
    return False


def socialize(world, agent: Agent) -> bool:
    """Extended model: form or join social groups, and support group mates."""
    cfg, rng = world.cfg, world.rng
    others = [o for o in world.agents.values()
              if o.id != agent.id and euclidean(o.x, o.y, agent.x, agent.y) < cfg.SOCIAL_RADIUS]
    if not others:
        return False
    other = others[int(rng.integers(0, len(others)))]

    if agent.group_id is None and other.group_id is None:
        if rng.random() < cfg.GROUP_FORM_PROB:
            group = world.form_group(agent, other)
            world.log_event("group", agent, other, f"agents {agent.id} and {other.id} formed group {group.id}")
    elif other.group_id is None:
        if rng.random() < cfg.GROUP_JOIN_PROB:
            world.join_group(other, agent.group_id)
    elif agent.group_id is None:
        if rng.random() < cfg.GROUP_JOIN_PROB:
            world.join_group(agent, other.group_id)
    elif agent.group_id == other.group_id:
        for member in (agent, other):
            member.energy += cfg.GROUP_ENERGY_BONUS
            member.vitals.stress = max(0.0, member.vitals.stress - cfg.GROUP_STRESS_RELIEF)

    if agent.group_id is not None and agent.group_id == other.group_id:
        agent.policy.share(other.policy, cfg.SHARE_DISCOUNT)
    return True


def resolve(world, agent: Agent) -> bool:
    """Run the per-agent interaction chain; returns whether the agent ate."""
    ate = feed(world, agent)
    try_attack(world, agent)
    if agent.alive:
        try_merge(world, agent)
    if agent.alive:
        try_reproduce(world, agent)
    if world.cfg.extended and agent.alive:
        socialize(world, agent)
    return ate
