# datacenter.py
import logging
from collections import namedtuple

from power_models import LinearPowerModel

logger = logging.getLogger(__name__)

# One proposed live migration: move `vm` to `host`.
MigrationDirective = namedtuple("MigrationDirective", ["vm", "host"])

# Extra load a migrating-in VM puts on its destination, as a multiple of its demand.
MIGRATION_OVERHEAD = 0.9 / 0.1


class Host:
    def __init__(self, host_id, num_cores, core_capacity, ram_capacity, storage_capacity,
                 bw_capacity=1000000, cpu_oversub=1.0, ram_oversub=1.0, storage_oversub=1.0,
                 power_idle=100.0, power_max=250.0, power_model=None):
        """
        Physical machine hosting VMs.

        CPU is time-shared: a host may end up holding more requested MIPS than
        it has (it is then over-utilized), but RAM, bandwidth and storage are
        hard limits for vm_create().

        :param host_id: Unique identifier
        :param num_cores: Number of processing elements
        :param core_capacity: MIPS per core
        :param ram_capacity: RAM in MB
        :param storage_capacity: Storage in GB
        :param bw_capacity: Network bandwidth in bit/s
        :param power_model: Object exposing power(utilization); defaults to a
            linear model between power_idle and power_max
        """
        self.host_id = host_id
        self.num_cores = num_cores
        self.core_capacity = core_capacity
        self.ram_capacity = ram_capacity
        self.storage_capacity = storage_capacity
        self.bw_capacity = bw_capacity
        self.cpu_oversub = cpu_oversub
        self.ram_oversub = ram_oversub
        self.storage_oversub = storage_oversub
        if power_model is None:
            power_model = LinearPowerModel(power_idle, power_max)
        self.power_model = power_model
        self.vms = []
        self.vms_migrating_in = []
        self.active = True

    @property
    def cpu_capacity(self):
        return self.num_cores * self.core_capacity

    def utilization_of_cpu_mips(self):
        return sum(vm.current_requested_mips() for vm in self.vms)

    def requested_utilization(self):
        """Requested MIPS over capacity; above 1.0 when CPU is oversubscribed."""
        return self.utilization_of_cpu_mips() / self.cpu_capacity

    def cpu_utilization(self):
        return min(self.requested_utilization(), 1.0)

    def migration_overhead_mips(self):
        """Extra CPU a live migration costs the receiving host, on top of the VM's own demand."""
        return sum(vm.current_requested_mips() * MIGRATION_OVERHEAD
                   for vm in self.vms if vm in self.vms_migrating_in)

    def planning_cpu_mips(self):
        """Requested MIPS plus migration overhead: the load placement decisions see."""
        return self.utilization_of_cpu_mips() + self.migration_overhead_mips()

    def available_ram(self):
        return self.ram_capacity * self.ram_oversub - sum(v.ram for v in self.vms)

    def available_bw(self):
        return self.bw_capacity - sum(v.bw for v in self.vms)

    def available_storage(self):
        return self.storage_capacity * self.storage_oversub - sum(v.storage for v in self.vms)

    def _admits(self, vm):
        return (vm.ram <= self.available_ram() and
                vm.bw <= self.available_bw() and
                vm.storage <= self.available_storage())

    def is_suitable_for_vm(self, vm):
        total_cpu = self.utilization_of_cpu_mips() + vm.current_requested_mips()
        return total_cpu <= self.cpu_capacity * self.cpu_oversub and self._admits(vm)

    def vm_create(self, vm):
        if vm in self.vms or not self._admits(vm):
            logger.debug(f"Host {self.host_id} cannot allocate VM {vm.vm_id}.")
            return False
        self.vms.append(vm)
        vm.host = self
        logger.debug(f"VM {vm.vm_id} allocated to Host {self.host_id}.")
        return True

    def vm_destroy(self, vm):
        if vm not in self.vms:
            logger.debug(f"VM {vm.vm_id} not found on Host {self.host_id}.")
            return
        self.vms.remove(vm)
        if vm.host is self:
            vm.host = None
        logger.debug(f"VM {vm.vm_id} deallocated from Host {self.host_id}.")

    def vm_destroy_all(self):
        for vm in self.vms:
            if vm.host is self and vm not in self.vms_migrating_in:
                vm.host = None
        self.vms = []

    def add_migrating_in_vm(self, vm):
        """Register a VM that is being live-migrated onto this host."""
        if vm in self.vms_migrating_in:
            return
        vm.in_migration = True
        self.vms_migrating_in.append(vm)
        if vm not in self.vms:
            self.vms.append(vm)

    def remove_migrating_in_vm(self, vm):
        if vm in self.vms_migrating_in:
            self.vms_migrating_in.remove(vm)
        vm.in_migration = False

    def reallocate_migrating_in_vms(self):
        for vm in self.vms_migrating_in:
            if vm not in self.vms:
                self.vms.append(vm)

    def power(self):
        return self.power_model.power(self.cpu_utilization())

    def power_consumption(self):
        u = self.cpu_utilization()
        if not self.active and u == 0:
            return 0.0
        return self.power_model.power(u)

    def power_on(self):
        self.active = True
        logger.info(f"Host {self.host_id} is now ON.")

    def power_off(self):
        self.active = False
        logger.info(f"Host {self.host_id} is now OFF.")

    def __repr__(self):
        return f"Host({self.host_id!r})"

    def __str__(self):
        return (f"Host {self.host_id} | Cores: {self.num_cores} x {self.core_capacity} MIPS "
                f"= {self.cpu_capacity} MIPS, RAM: {self.ram_capacity} MB, "
                f"BW: {self.bw_capacity} bit/s, Storage: {self.storage_capacity} GB")


class VM:
    def __init__(self, vm_id, cpu, ram, storage=0, bw=0, cpu_demand_ratio=1.0):
        """
        VM represents a virtual machine instance.

        :param vm_id: Unique identifier
        :param cpu: MIPS (Million Instructions Per Second)
        :param ram: RAM in MB
        :param storage: Storage in GB
        :param bw: Bandwidth in bit/s
        :param cpu_demand_ratio: Fraction of the VM's MIPS currently requested (0 to 1)
        """
        self.vm_id = vm_id
        self.cpu = cpu
        self.ram = ram
        self.storage = storage
        self.bw = bw
        self.cpu_demand_ratio = cpu_demand_ratio
        self.in_migration = False
        self.host = None

    def current_requested_mips(self):
        return self.cpu * self.cpu_demand_ratio

    def set_cpu_demand_ratio(self, new_ratio):
        self.cpu_demand_ratio = min(max(new_ratio, 0.0), 1.0)

    def __repr__(self):
        return f"VM({self.vm_id!r})"

    def __str__(self):
        host = self.host.host_id if self.host is not None else "None"
        return (f"VM {self.vm_id} | CPU: {self.cpu} MIPS x {self.cpu_demand_ratio:.2f}, "
                f"RAM: {self.ram} MB, BW: {self.bw} bit/s, Storage: {self.storage} GB, Host: {host}")
