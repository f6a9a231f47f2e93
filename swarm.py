# swarm.py
import logging

import numpy as np

from capacity import can_receive, useful_hosts
from config import SwarmConfig
from datacenter import MigrationDirective
from energy import EnergyCalculator

logger = logging.getLogger(__name__)


class Swarm:
    def __init__(self, fitness, dimension, min_position, max_position, config=None, rng=None):
        """
        Particle swarm minimising `fitness` over a box.

        Each particle is pulled towards its own best position, the best
        position of its ring neighborhood and the global best.

        :param fitness: Callable mapping a position (1-D array) to a float
        :param dimension: Number of coordinates per position
        :param min_position: Lower bound of every coordinate
        :param max_position: Upper bound of every coordinate
        :param config: SwarmConfig
        :param rng: Random source with numpy Generator's random(size);
            defaults to numpy.random.default_rng(config.seed)
        """
        self.fitness = fitness
        self.dimension = dimension
        self.min_position = min_position
        self.max_position = max_position
        self.config = config or SwarmConfig()
        self.rng = rng if rng is not None else np.random.default_rng(self.config.seed)

        n = self.config.population
        vmax = self.config.max_velocity
        self.positions = min_position + self.rng.random((n, dimension)) * (max_position - min_position)
        self.velocities = (self.rng.random((n, dimension)) * 2 - 1) * vmax
        self.fitness_values = np.full(n, np.inf)
        self.particle_best_positions = self.positions.copy()
        self.particle_best_fitness = np.full(n, np.inf)
        self.best_position = None
        self.best_fitness = np.inf
        self.neighbors = self._ring_neighbors(n)
        self.iteration = 0

    def _ring_neighbors(self, n):
        half = self.config.neighborhood_size // 2
        offsets = np.arange(-half, half + 1)
        indices = np.arange(n)[:, None] + offsets[None, :]
        if self.config.neighborhood_circular:
            return indices % n
        return np.clip(indices, 0, n - 1)

    def evaluate(self):
        self.fitness_values = np.array([self.fitness(p) for p in self.positions], dtype=float)
        improved = self.fitness_values < self.particle_best_fitness
        self.particle_best_positions[improved] = self.positions[improved]
        self.particle_best_fitness[improved] = self.fitness_values[improved]

        best = int(np.argmin(self.particle_best_fitness))
        if self.best_position is None or self.particle_best_fitness[best] < self.best_fitness:
            self.best_fitness = float(self.particle_best_fitness[best])
            self.best_position = self.particle_best_positions[best].copy()

    def neighborhood_best_positions(self):
        neighbor_fitness = self.particle_best_fitness[self.neighbors]
        choice = self.neighbors[np.arange(len(self.neighbors)), np.argmin(neighbor_fitness, axis=1)]
        return self.particle_best_positions[choice]

    def update(self):
        c = self.config
        x = self.positions
        r_particle, r_neighborhood, r_global = self.rng.random((3,) + x.shape)
        self.velocities = (c.inertia * self.velocities
                           + r_particle * c.particle_increment * (self.particle_best_positions - x)
                           + r_neighborhood * c.neighborhood_increment * (self.neighborhood_best_positions() - x)
                           + r_global * c.global_increment * (self.best_position - x))
        self.velocities = np.clip(self.velocities, -c.max_velocity, c.max_velocity)
        self.positions = np.clip(x + self.velocities, self.min_position, self.max_position)

    def evolve(self):
        self.evaluate()
        self.update()
        self.iteration += 1

    def optimize(self, iterations=None):
        """Run the configured iterations, then score the final positions. Returns (best_position, best_fitness)."""
        iterations = self.config.iterations if iterations is None else iterations
        for _ in range(iterations):
            self.evolve()
            logger.debug(f"[Swarm] Iteration {self.iteration:03d} | Best fitness: {self.best_fitness:.4f}")
        self.evaluate()
        return self.best_position.copy(), self.best_fitness


class SwarmPlacement:
    def __init__(self, hosts, detector, config, rng=None):
        """
        Assigns all VMs at once by minimising total transmission + processing energy.

        :param hosts: list of Host objects
        :param detector: overload detector used to filter candidate hosts
        :param config: PlannerConfig (utilization_threshold, swarm, transmission)
        :param rng: Random source shared by every run; when None each run
            starts from numpy.random.default_rng(config.swarm.seed)
        """
        self.hosts = hosts
        self.detector = detector
        self.config = config
        self.rng = rng
        self.best_position = None
        self.best_fitness = None

    def place(self, vms, excluded_hosts, sources=None):
        vms = list(vms)
        potential_hosts = useful_hosts(self.hosts, vms, excluded_hosts, self.detector,
                                       self.config.utilization_threshold)
        if not potential_hosts:
            logger.warning(f"[Swarm] No host can receive all {len(vms)} candidate VM(s)")
            return [], vms

        calculator = EnergyCalculator(potential_hosts, vms, sources, self.config.transmission)
        rng = self.rng if self.rng is not None else np.random.default_rng(self.config.swarm.seed)
        swarm = Swarm(calculator.fitness, len(vms), 0, len(potential_hosts) - 1, self.config.swarm, rng=rng)
        self.best_position, self.best_fitness = swarm.optimize()
        logger.info(f"[Swarm] {len(vms)} VM(s) over {len(potential_hosts)} host(s) | "
                    f"Best energy: {self.best_fitness:.2f} J")

        directives = []
        unplaced = []
        for vm, index in zip(vms, calculator.host_indices(self.best_position)):
            host = potential_hosts[index]
            # Each VM was scored alone; the host must still take it on top of this batch.
            if can_receive(host, vm, self.detector, self.config.utilization_threshold) and host.vm_create(vm):
                directives.append(MigrationDirective(vm, host))
                logger.debug(f"[Swarm] VM {vm.vm_id} allocated to Host {host.host_id}")
            else:
                unplaced.append(vm)
                logger.warning(f"[Swarm] Host {host.host_id} refused VM {vm.vm_id}")
        return directives, unplaced
