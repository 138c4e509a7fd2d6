import json
import logging
import queue
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from .entities import Agent

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    """Point-in-time copy of the world; shares no mutable state with it."""
    tick: int
    agents: Tuple[Dict[str, Any], ...]
    foods: Tuple[Dict[str, Any], ...]
    metrics: Dict[str, float]
    lineage: Dict[int, Tuple[int, ...]]
    events: Tuple[Dict[str, Any], ...]

    def to_message(self) -> Dict[str, Any]:
        return {
            "type": "state",
            "tick": self.tick,
            "agents": [dict(a) for a in self.agents],
            "foods": [dict(f) for f in self.foods],
            "metrics": dict(self.metrics),
            "lineage": {k: list(v) for k, v in self.lineage.items()},
            "events": [dict(e) for e in self.events],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_message())


def config_message(w: int, h: int) -> Dict[str, Any]:
    """One-time handshake sent to a consumer before any state message."""
    return {"type": "config", "w": w, "h": h}


def agent_view(agent: Agent, extended: bool) -> Dict[str, Any]:
    t = agent.traits
    view = {
        "id": agent.id,
        "x": agent.x,
        "y": agent.y,
        "energy": agent.energy,
        "age": agent.age,
        "sex": agent.sex,
        "spd": t.speed,
        "agg": t.aggression,
        "repro": t.reproduction,
        "exp": dict(agent.experience),
        "parents": list(agent.parents),
        "strength": t.strength,
        "policy_dir": agent.last_action,
    }
    if extended:
        v = agent.vitals
        view.update(
            group_id=agent.group_id,
            fatigue=v.fatigue,
            hunger=v.hunger,
            health=v.health,
            stress=v.stress,
        )
    return view


def build_snapshot(world) -> Snapshot:
    extended = world.cfg.extended
    return Snapshot(
        tick=world.tick,
        agents=tuple(agent_view(world.agents[aid], extended) for aid in sorted(world.agents)),
        foods=tuple({"x": f.x, "y": f.y, "energy": f.energy} for f in world.foods.values()),
        metrics=world.metrics(),
        lineage=dict(world.lineage),
        events=tuple(
            {
                "type": e.type,
                "tick": e.tick,
                "actor_id": e.actor_id,
                "actor_sex": e.actor_sex,
                "target_id": e.target_id,
                "message": e.message,
                "value": e.value,
            }
            for e in world.events
        ),
    )


class Publisher:
    """Bounded, lossy hand-off from the tick thread to a consumer."""

    def __init__(self, capacity: int):
        self.queue: "queue.Queue[Snapshot]" = queue.Queue(maxsize=max(1, capacity))
        self.published = 0
        self.dropped = 0

    def offer(self, snapshot: Snapshot) -> bool:
        try:
            self.queue.put_nowait(snapshot)
        except queue.Full:
            self.dropped += 1
            log.debug("publish queue full, dropped snapshot for tick %d (%d dropped)", snapshot.tick, self.dropped)
            return False
        self.published += 1
        return True

    def poll(self, timeout: Optional[float] = None) -> Optional[Snapshot]:
        try:
            if timeout is None:
                return self.queue.get_nowait()
            return self.queue.get(timeout=timeout)
        except queue.Empty:
            return None
