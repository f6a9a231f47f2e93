# schedule.py
import logging
from dataclasses import replace

from binpacking import BinPackingPlacement
from capacity import can_receive, power_after_allocation, predicted_utilization_after_allocation, \
    sort_by_cpu_utilization_decrease
from datacenter import MigrationDirective
from power_models import InvalidUtilization
from swarm import SwarmPlacement

logger = logging.getLogger(__name__)


class GreedyPlacement:
    def __init__(self, hosts, detector, config):
        """
        One VM at a time, each to the best eligible host.

        :param hosts: list of Host objects
        :param detector: overload detector used to reject hosts
        :param config: PlannerConfig (threshold, host_sort, best_fit_host, vm_increase)
        """
        self.hosts = hosts
        self.detector = detector
        self.config = config

    def place(self, vms, excluded_hosts, sources=None):
        """
        Allocates (for real) every VM it can. Returns (directives, unplaced).
        """
        directives = []
        unplaced = []
        ordered = sorted(vms, key=lambda vm: vm.current_requested_mips(), reverse=not self.config.vm_increase)
        for vm in ordered:
            host = self.find_host_for_vm(vm, excluded_hosts)
            if host is not None and host.vm_create(vm):
                directives.append(MigrationDirective(vm, host))
                logger.debug(f"[Placement] VM {vm.vm_id} allocated to Host {host.host_id}")
            else:
                unplaced.append(vm)
                logger.warning(f"[Placement] No suitable host found for VM {vm.vm_id}")
        return directives, unplaced

    def find_host_for_vm(self, vm, excluded_hosts):
        hosts = [h for h in self.hosts if h not in excluded_hosts]
        if self.config.host_sort:
            hosts = sort_by_cpu_utilization_decrease(hosts)
        candidates = [h for h in hosts if can_receive(h, vm, self.detector, self.config.utilization_threshold)]
        if self.config.best_fit_host:
            return self._best_fit_host(vm, candidates)
        return self._least_power_increase(vm, candidates)

    def _least_power_increase(self, vm, candidates):
        min_power = float("inf")
        allocated_host = None
        for host in candidates:
            try:
                power_diff = power_after_allocation(host, vm) - host.power()
            except InvalidUtilization:
                logger.debug(f"[Placement] Host {host.host_id} skipped for VM {vm.vm_id}: utilization out of range")
                continue
            if power_diff < min_power:
                min_power = power_diff
                allocated_host = host
        return allocated_host

    def _best_fit_host(self, vm, candidates):
        max_predict = float("-inf")
        allocated_host = None
        for host in candidates:
            prediction = predicted_utilization_after_allocation(host, [vm], self.detector)
            if prediction < 1 and prediction > max_predict:
                max_predict = prediction
                allocated_host = host
        return allocated_host


class PlacementScheduler:
    def __init__(self, hosts, detector, config, rng=None):
        """
        Routes a batch of VMs to one placement strategy.

        :param hosts: list of Host objects
        :param detector: overload detector shared by all strategies
        :param config: PlannerConfig; config.placement picks the strategy
        :param rng: random source handed to the swarm
        """
        self.hosts = hosts
        self.config = config
        self.strategies = {
            "greedy": GreedyPlacement(hosts, detector, config),
            "bin_packing": BinPackingPlacement(hosts, detector, config),
            "swarm": SwarmPlacement(hosts, detector, config, rng=rng),
        }

    def select_strategy(self, vms, excluded_hosts, consolidation=False):
        policy = self.config.placement
        if policy in self.strategies:
            return policy
        elif policy == "auto":
            swarm_threshold = self.config.under_swarm_threshold if consolidation else self.config.swarm_threshold
            if len(vms) > swarm_threshold:
                return "swarm"
            if self.config.bin_packing_ratio is not None:
                open_hosts = len([h for h in self.hosts if h not in excluded_hosts])
                if open_hosts and len(vms) / open_hosts >= self.config.bin_packing_ratio:
                    return "bin_packing"
            return "greedy"
        else:
            raise ValueError(f"Unknown placement strategy: {policy}")

    def place(self, vms, excluded_hosts, sources=None, consolidation=False):
        if not vms:
            return [], []
        name = self.select_strategy(vms, excluded_hosts, consolidation)
        logger.info(f"[Placement] {len(vms)} VM(s) using '{name}'")
        return self.strategies[name].place(vms, excluded_hosts, sources)

    def set_policy(self, policy):
        if policy not in self.strategies and policy != "auto":
            raise ValueError(f"Unknown placement strategy: {policy}")
        self.config = replace(self.config, placement=policy)
        for strategy in self.strategies.values():
            strategy.config = self.config
