from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass
class CFG:
    # World
    W: int = 100
    H: int = 100
    SEED: Optional[int] = None
    N0: int = 2                 # initial random agents
    MODEL: str = "actor_critic"  # "actor_critic" | "qlearning" | "physio"

    # Timing / concurrency
    TICK_INTERVAL: float = 0.2  # seconds between ticks
    LOCK_TIMEOUT: float = 5.0
    PUBLISH_CAPACITY: int = 10
    EVENT_LOG_CAP: int = 5000

    # Food
    RANDOM_FOOD: bool = True
    RANDOM_FOOD_PROB: float = 0.04
    FOOD_ATTEMPT_DIVISOR: int = 50       # spawn attempts per tick = W*H // divisor
    FOOD_ENERGY: Tuple[float, float] = (12.0, 24.0)
    DEFAULT_FOOD_ENERGY: float = 12.0

    # Metabolism
    METABOLISM: float = 0.08
    HUNGER_LIMIT: int = 100      # ticks without food before the extra drain kicks in
    HUNGER_DRAIN: float = 0.15

    # Trait ranges (lo, hi)
    AGGRESSION_RANGE: Tuple[float, float] = (0.0, 1.0)
    SPEED_RANGE: Tuple[int, int] = (1, 5)
    STRENGTH_RANGE: Tuple[float, float] = (0.0, 100.0)
    REPRO_RANGE: Tuple[float, float] = (0.0, 1.0)

    # Random seeding
    INIT_ENERGY: Tuple[float, float] = (100.0, 150.0)
    INIT_SPEED: Tuple[int, int] = (1, 2)
    INIT_STRENGTH: Tuple[float, float] = (5.0, 15.0)
    INIT_REPRO: Tuple[float, float] = (0.3, 0.65)

    # Placement defaults (external add_agent requests)
    PLACE_ENERGY: float = 40.0
    PLACE_SEX: str = "M"
    PLACE_AGGRESSION: float = 0.5
    PLACE_SPEED: int = 1
    PLACE_STRENGTH: float = 5.0
    PLACE_REPRO: float = 0.05

    # Perception
    THREAT_RADIUS: int = 3
    RIVAL_RADIUS: int = 2        # tabular threat bucket
    CROWD_RADIUS: int = 3        # tabular nearby-agent bucket
    PHYSIO_FOOD_SIGHT: float = 50.0
    PHYSIO_CROWD_RADIUS: float = 10.0

    # Combat
    ATTACK_THRESHOLD: float = 0.1
    ATTACK_NOISE: float = 0.2
    ATTACK_DAMAGE: Tuple[float, float] = (2.0, 5.0)
    ENERGY_STEAL: float = 0.1

    # Merge
    MERGE_THRESHOLD: float = 40.0
    MERGE_BASE_PROB: float = 0.15
    MERGE_PROB_SCALE: float = 0.2
    MERGE_COST: float = 0.85

    # Reproduction
    REPRO_ENERGY_FLOOR: float = 15.0
    REPRO_PENALTY: float = 0.85
    CHILD_ENERGY_FRAC: float = 0.25     # of the parents' combined energy
    MUT_AGGRESSION: float = 0.05
    MUT_SPEED: float = 0.5
    MUT_STRENGTH: float = 0.5
    MUT_REPRO: float = 0.01
    POLICY_NOISE: float = 0.02
    INHERIT_DISCOUNT: float = 1.0       # for table entries only one parent knows

    # Reward shaping
    KILL_REWARD: float = 5.0
    REPRO_REWARD: float = 3.0
    FOOD_DIST_WEIGHT: float = 1.5
    EAT_BONUS: float = 2.0
    WELL_FED_ENERGY: float = 50.0
    WELL_FED_BONUS: float = 0.1
    AGE_REWARD: float = 1 / 1000
    GROUP_BONUS: float = 0.2
    VITALS_PENALTY: float = 1 / 200

    # Actor-critic
    AC_LR: float = 0.03
    AC_CRITIC_LR: float = 0.06
    AC_GAMMA: float = 0.98
    AC_ENTROPY_BETA: float = 0.01
    AC_ADV_CLIP: float = 6.0
    AC_REWARD_ALPHA: float = 0.01
    AC_REWARD_EPS: float = 1e-8
    AC_HEURISTIC_SCALE: float = 3.0
    AC_INIT_SIGMA: float = 0.1

    # Tabular Q-learning
    Q_EPSILON: float = 0.3
    Q_ALPHA: float = 0.1
    Q_GAMMA: float = 0.95
    Q_EPSILON_DECAY: float = 0.9995
    Q_EPSILON_MIN: float = 0.01
    Q_INIT_RANGE: float = 0.05

    # Extended physiological model
    PHYSIO_EPSILON: float = 0.1
    PHYSIO_ALPHA: float = 0.1
    PHYSIO_GAMMA: float = 0.9
    FATIGUE_RATE: Tuple[float, float] = (0.1, 0.3)
    HUNGER_RATE: Tuple[float, float] = (0.1, 0.4)
    STRESS_RATE: Tuple[float, float] = (0.05, 0.15)
    VITALS_MAX: float = 100.0
    HEALTH_LOSS_RATE: float = 1 / 600   # per unit of fatigue + hunger + stress
    EXHAUSTION_DRAIN: float = 0.15      # extra drain once health hits zero
    SOCIAL_RADIUS: float = 20.0
    GROUP_FORM_PROB: float = 0.3
    GROUP_JOIN_PROB: float = 0.5
    GROUP_ENERGY_BONUS: float = 0.5
    GROUP_STRESS_RELIEF: float = 1.0
    SHARE_DISCOUNT: float = 0.7

    # Metrics / charts
    METRICS_EVERY: int = 1
    CHART_DIR: str = "simulation_results"

    @property
    def extended(self) -> bool:
        return self.MODEL == "physio"
