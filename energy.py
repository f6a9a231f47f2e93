# energy.py
import numpy as np

from capacity import power_after_allocation
from config import TransmissionConfig
from power_models import InvalidUtilization


def transmission_energy(src_bw, dst_bw, ram, config=None):
    """
    Energy (J) spent by both NICs to copy `ram` MB of memory during live migration.

    NIC power grows linearly from low_power at low_bw to high_power at high_bw;
    each side is busy for ram * 8000 / bw seconds.
    """
    config = config or TransmissionConfig()
    ratio = (config.high_power - config.low_power) / (config.high_bw - config.low_bw)

    def side(bw):
        return ram * 8000 / bw * (config.low_power + (bw - config.low_bw) * ratio)

    return side(src_bw) + side(dst_bw)


def migration_transmission_energy(src_host, dst_host, vm, config=None):
    return transmission_energy(src_host.bw_capacity, dst_host.bw_capacity, vm.ram, config)


class EnergyCalculator:
    def __init__(self, hosts, vms, sources=None, config=None):
        """
        Energy of sending each candidate VM to each candidate host.

        :param hosts: Candidate destination hosts (index = swarm coordinate value)
        :param vms: VMs to place (index = swarm dimension)
        :param sources: {vm: source host}; defaults to vm.host. VMs without a
            source cost no transmission energy.
        :param config: TransmissionConfig
        """
        self.hosts = list(hosts)
        self.vms = list(vms)
        self.sources = sources or {}
        self.config = config or TransmissionConfig()
        self.energy_matrix = np.array(
            [[self.total_energy(i, j) for j in range(len(self.hosts))] for i in range(len(self.vms))],
            dtype=float,
        ).reshape(len(self.vms), len(self.hosts))

    def source_of(self, vm):
        return self.sources.get(vm, vm.host)

    def transmission_energy(self, vm_index, host_index):
        vm = self.vms[vm_index]
        source = self.source_of(vm)
        if source is None:
            return 0.0
        return migration_transmission_energy(source, self.hosts[host_index], vm, self.config)

    def process_energy(self, vm_index, host_index):
        try:
            return power_after_allocation(self.hosts[host_index], self.vms[vm_index])
        except InvalidUtilization:
            return np.inf

    def total_energy(self, vm_index, host_index):
        return self.transmission_energy(vm_index, host_index) + self.process_energy(vm_index, host_index)

    def host_indices(self, position):
        indices = np.rint(np.asarray(position, dtype=float)).astype(int)
        return np.clip(indices, 0, len(self.hosts) - 1)

    def fitness(self, position):
        indices = self.host_indices(position)
        return float(self.energy_matrix[np.arange(len(indices)), indices].sum())
