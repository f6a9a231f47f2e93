# config.py
import logging
import os
from dataclasses import dataclass, field, replace
from typing import Optional

from rich.logging import RichHandler

PLACEMENT_STRATEGIES = ("greedy", "bin_packing", "swarm", "auto")
OVERLOAD_POLICIES = ("threshold", "mad")


@dataclass(frozen=True)
class SwarmConfig:
    population: int = 100
    neighborhood_size: int = 20
    neighborhood_circular: bool = True
    inertia: float = 0.95
    particle_increment: float = 0.8
    neighborhood_increment: float = 0.9
    global_increment: float = 0.8
    max_velocity: float = 0.1
    iterations: int = 100
    seed: Optional[int] = None


@dataclass(frozen=True)
class TransmissionConfig:
    """Bandwidth (bit/s) to NIC power (W) ladder used for live-migration energy."""
    low_bw: float = 80000000
    high_bw: float = 140000000
    low_power: float = 4000
    high_power: float = 6000


@dataclass(frozen=True)
class PlannerConfig:
    """
    Settings of one MigrationController.

    :param utilization_threshold: Upper CPU utilization accepted on a destination host
    :param placement: "greedy", "bin_packing", "swarm" or "auto"
    :param vm_increase: Place VMs in ascending instead of descending demand order
    :param host_sort: Try the busiest hosts first
    :param best_fit_host: Greedy picks the highest predicted utilization instead of the lowest power increase
    :param swarm_threshold: In "auto", more candidates than this use the swarm (overload evictions)
    :param under_swarm_threshold: Same as swarm_threshold, for consolidation evictions
    :param bin_packing_ratio: In "auto", candidates per host ratio from which bin packing is used
    :param overload_policy: "threshold" or "mad"
    :param mad_safety_parameter: Safety parameter of the MAD detector
    """
    utilization_threshold: float = 1.0
    placement: str = "auto"
    vm_increase: bool = False
    host_sort: bool = True
    best_fit_host: bool = False
    swarm_threshold: int = 1000
    under_swarm_threshold: int = 1000
    bin_packing_ratio: Optional[float] = None
    overload_policy: str = "threshold"
    mad_safety_parameter: float = 2.5
    swarm: SwarmConfig = field(default_factory=SwarmConfig)
    transmission: TransmissionConfig = field(default_factory=TransmissionConfig)

    def validate(self):
        if self.placement not in PLACEMENT_STRATEGIES:
            raise ValueError(f"Unknown placement strategy: {self.placement}")
        if self.overload_policy not in OVERLOAD_POLICIES:
            raise ValueError(f"Unknown overload policy: {self.overload_policy}")
        if self.utilization_threshold <= 0:
            raise ValueError("utilization_threshold must be positive")
        if self.bin_packing_ratio is not None and self.bin_packing_ratio <= 0:
            raise ValueError("bin_packing_ratio must be positive")
        if self.swarm.population < 1 or self.swarm.iterations < 0:
            raise ValueError("Swarm needs at least one particle and a non-negative iteration count")
        if self.transmission.high_bw <= self.transmission.low_bw:
            raise ValueError("Transmission high_bw must be greater than low_bw")
        return self

    @classmethod
    def from_env(cls, prefix="PLANNER_", environ=None):
        """
        Build a config from environment variables, e.g. PLANNER_PLACEMENT=swarm,
        PLANNER_UTILIZATION_THRESHOLD=0.9, PLANNER_SWARM_SEED=42.
        Unset variables keep their defaults.
        """
        env = os.environ if environ is None else environ
        base = cls()

        def get(name, cast, default):
            raw = env.get(prefix + name)
            if raw is None or raw == "":
                return default
            return cast(raw)

        swarm = SwarmConfig(
            population=get("SWARM_POPULATION", int, base.swarm.population),
            neighborhood_size=get("SWARM_NEIGHBORHOOD_SIZE", int, base.swarm.neighborhood_size),
            inertia=get("SWARM_INERTIA", float, base.swarm.inertia),
            max_velocity=get("SWARM_MAX_VELOCITY", float, base.swarm.max_velocity),
            iterations=get("SWARM_ITERATIONS", int, base.swarm.iterations),
            seed=get("SWARM_SEED", int, base.swarm.seed),
        )
        config = replace(
            base,
            utilization_threshold=get("UTILIZATION_THRESHOLD", float, base.utilization_threshold),
            placement=get("PLACEMENT", str, base.placement),
            vm_increase=get("VM_INCREASE", _as_bool, base.vm_increase),
            host_sort=get("HOST_SORT", _as_bool, base.host_sort),
            best_fit_host=get("BEST_FIT_HOST", _as_bool, base.best_fit_host),
            swarm_threshold=get("SWARM_THRESHOLD", int, base.swarm_threshold),
            under_swarm_threshold=get("UNDER_SWARM_THRESHOLD", int, base.under_swarm_threshold),
            bin_packing_ratio=get("BIN_PACKING_RATIO", float, base.bin_packing_ratio),
            overload_policy=get("OVERLOAD_POLICY", str, base.overload_policy),
            mad_safety_parameter=get("MAD_SAFETY_PARAMETER", float, base.mad_safety_parameter),
            swarm=swarm,
        )
        return config.validate()


def _as_bool(raw):
    return raw.strip().lower() in ("1", "true", "yes", "on")


def setup_logging(level=logging.INFO, logger_name=None):
    """Attach a rich console handler once and set the level."""
    logger = logging.getLogger(logger_name)
    logger.setLevel(level)
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(rich_tracebacks=True)
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
    return logger
