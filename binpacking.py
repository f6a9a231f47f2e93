# binpacking.py
import logging
import math

import numpy as np

from capacity import predicted_utilization_after_allocation, sort_by_cpu_utilization_decrease, useful_hosts
from datacenter import MigrationDirective

logger = logging.getLogger(__name__)


def available_percent(host):
    """Free CPU of the host in whole percentage points: 100 - floor(current %)."""
    current = host.planning_cpu_mips() * 100.0 / host.cpu_capacity
    return max(100 - int(math.floor(round(current, 6))), 0)


def weight_percent(host, vm):
    """VM demand on this host in whole percentage points, rounded up."""
    return int(math.ceil(round(vm.current_requested_mips() * 100.0 / host.cpu_capacity, 6)))


class KnapsackTable:
    def __init__(self, values, selections, weights, capacity):
        """
        :param values: (n + 1) x (capacity + 1) array, best predicted utilization (%) per cell
        :param selections: selections[i][w] is the tuple of VMs achieving values[i, w]
        :param weights: integer weight of each candidate VM
        :param capacity: W, the host's free capacity in percentage points
        """
        self.values = values
        self.selections = selections
        self.weights = weights
        self.capacity = capacity

    @property
    def best_selection(self):
        return list(self.selections[-1][-1])

    @property
    def best_value(self):
        return float(self.values[-1, -1])


def knapsack_table(host, vms, detector, threshold):
    """
    0/1 knapsack over the candidate VMs for one host.

    A VM joins a cell's selection when, trial-allocated together with the
    selection of cell (i - 1, w - u_i), the host's predicted utilization stays
    under 100% and under `threshold`, and beats the value without it.
    """
    capacity = available_percent(host)
    weights = [weight_percent(host, vm) for vm in vms]
    n = len(vms)
    values = np.zeros((n + 1, capacity + 1))
    selections = [[()] * (capacity + 1)]
    for i in range(1, n + 1):
        vm = vms[i - 1]
        u = weights[i - 1]
        previous = selections[i - 1]
        row = list(previous)
        values[i] = values[i - 1]
        for w in range(u, capacity + 1):
            base = previous[w - u]
            prediction = predicted_utilization_after_allocation(host, base + (vm,), detector)
            if prediction >= 1.0 or prediction > threshold:
                continue
            percent = prediction * 100.0
            if percent > values[i - 1, w]:
                values[i, w] = percent
                row[w] = base + (vm,)
        selections.append(row)
    return KnapsackTable(values, selections, weights, capacity)


class BinPackingPlacement:
    def __init__(self, hosts, detector, config):
        """
        Fills hosts one by one, busiest first, each with the subset of the
        remaining VMs that packs it the tightest.

        :param hosts: list of Host objects
        :param detector: overload detector used for predictions
        :param config: PlannerConfig (utilization_threshold)
        """
        self.hosts = hosts
        self.detector = detector
        self.config = config

    def place(self, vms, excluded_hosts, sources=None):
        threshold = self.config.utilization_threshold
        remaining = sorted(vms, key=lambda vm: vm.current_requested_mips())
        potential_hosts = sort_by_cpu_utilization_decrease(
            useful_hosts(self.hosts, remaining, excluded_hosts, self.detector, threshold))
        directives = []
        for host in potential_hosts:
            if not remaining:
                break
            table = knapsack_table(host, remaining, self.detector, threshold)
            for vm in table.best_selection:
                if not host.vm_create(vm):
                    logger.warning(f"[BinPacking] Host {host.host_id} refused VM {vm.vm_id}")
                    continue
                directives.append(MigrationDirective(vm, host))
                remaining.remove(vm)
                logger.debug(f"[BinPacking] VM {vm.vm_id} allocated to Host {host.host_id}")
        for vm in remaining:
            logger.warning(f"[BinPacking] No suitable host found for VM {vm.vm_id}")
        return directives, remaining
