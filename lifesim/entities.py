from collections import Counter
from dataclasses import dataclass, field
from typing import Any, List, Optional

from .utils import STAY

MALE = "M"
FEMALE = "F"


@dataclass
class Traits:
    aggression: float
    speed: int
    strength: float
    reproduction: float


@dataclass
class Vitals:
    fatigue: float = 0.0
    hunger: float = 0.0   # ticks since eating in the basic model, 0..100 in the extended one
    stress: float = 0.0
    health: float = 100.0


@dataclass
class Agent:
    id: int
    x: int
    y: int
    energy: float
    sex: str
    traits: Traits
    policy: Any
    age: int = 0
    experience: Counter = field(default_factory=Counter)
    vitals: Vitals = field(default_factory=Vitals)
    parents: List[int] = field(default_factory=list)
    group_id: Optional[int] = None
    last_action: int = STAY
    alive: bool = True


@dataclass
class Food:
    x: int
    y: int
    energy: float


@dataclass(frozen=True)
class Event:
    type: str
    tick: int
    actor_id: int
    actor_sex: str
    target_id: Optional[int] = None
    message: str = ""
    value: Optional[float] = None


@dataclass
class SocialGroup:
    id: int
    members: List[int] = field(default_factory=list)
