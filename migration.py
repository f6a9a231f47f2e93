# migration.py
import logging
import time

from config import PlannerConfig
from history import HistoryRecorder, SimulationClock
from overload import make_overload_detector
from schedule import PlacementScheduler

logger = logging.getLogger(__name__)


class AllocationRestoreError(RuntimeError):
    """
    The pre-pass allocation could not be rebuilt. Host/VM state no longer
    matches the cluster; callers must resynchronise it before planning again.
    """

    def __init__(self, vm_id, host_id, reason="creation refused"):
        self.vm_id = vm_id
        self.host_id = host_id
        super().__init__(f"Couldn't restore VM {vm_id} on Host {host_id} ({reason}); "
                         f"planner state corrupted, full resync required")


class MigrationPlan:
    def __init__(self, directives=None, unplaced=None, skipped_hosts=None):
        """
        Ordered migration proposals of one planning pass.

        :param directives: MigrationDirective list, in issue order
        :param unplaced: VMs that had to leave a host but found no destination
        :param skipped_hosts: under-utilized hosts whose evacuation was rolled back
        """
        self.directives = list(directives or [])
        self.unplaced = list(unplaced or [])
        self.skipped_hosts = list(skipped_hosts or [])

    def extend(self, directives):
        self.directives.extend(directives)

    def target_hosts(self):
        return [d.host for d in self.directives]

    def summary(self):
        return [(d.vm.vm_id, d.host.host_id) for d in self.directives]

    def __iter__(self):
        return iter(self.directives)

    def __len__(self):
        return len(self.directives)

    def __getitem__(self, index):
        return self.directives[index]

    def __repr__(self):
        return (f"MigrationPlan({self.summary()!r}, unplaced={[vm.vm_id for vm in self.unplaced]!r}, "
                f"skipped_hosts={[h.host_id for h in self.skipped_hosts]!r})")


def allocation_mapping(hosts):
    """{host_id: [vm_id, ...]} of the current allocation, migrating-in VMs left out."""
    return {host.host_id: [vm.vm_id for vm in host.vms if vm not in host.vms_migrating_in]
            for host in hosts}


class AllocationSnapshot:
    def __init__(self, hosts, entries):
        self.hosts = list(hosts)
        self.entries = list(entries)

    @classmethod
    def capture(cls, hosts):
        entries = [(host, vm) for host in hosts for vm in host.vms if vm not in host.vms_migrating_in]
        return cls(hosts, entries)

    def mapping(self):
        mapping = {host.host_id: [] for host in self.hosts}
        for host, vm in self.entries:
            mapping[host.host_id].append(vm.vm_id)
        return mapping

    def restore(self, hosts=None):
        """
        Drop every current placement, put migrating-in VMs back, then re-create
        the captured allocation. Raises AllocationRestoreError on the first
        VM that cannot be re-created.
        """
        hosts = self.hosts if hosts is None else hosts
        for host in hosts:
            host.vm_destroy_all()
            host.reallocate_migrating_in_vms()
        for host, vm in self.entries:
            if not host.vm_create(vm):
                logger.error(f"[Migration] Couldn't restore VM {vm.vm_id} on Host {host.host_id}")
                raise AllocationRestoreError(vm.vm_id, host.host_id)


class MigrationController:
    def __init__(self, hosts, vm_selection_policy, overload_detector=None, config=None,
                 history=None, clock=None, rng=None):
        """
        Plans VM migrations for one cluster, one call to optimize() per scheduling tick.

        optimize() mutates the hosts while it plans and puts them back before
        returning, so nothing else may touch them during a call.

        :param hosts: list of Host objects
        :param vm_selection_policy: object with select_victim(host) -> VM or None
        :param overload_detector: defaults to the variant named by config.overload_policy
        :param config: PlannerConfig
        :param history: HistoryRecorder receiving per-host samples and execution times
        :param clock: object with now(); timestamps the history samples. Without one,
            an internal SimulationClock advances by 1 after every pass
        :param rng: random source for the swarm strategy
        """
        self.hosts = hosts
        self.vm_selection_policy = vm_selection_policy
        self.config = (config or PlannerConfig()).validate()
        self.history = history if history is not None else HistoryRecorder()
        self.clock = clock if clock is not None else SimulationClock()
        self._ticks_per_pass = clock is None
        if overload_detector is None:
            overload_detector = make_overload_detector(self.config, self.history)
        self.overload_detector = overload_detector
        self.scheduler = PlacementScheduler(hosts, overload_detector, self.config, rng=rng)

    def optimize(self, vm_list):
        """
        Returns the MigrationPlan for the current utilization. Host/VM state
        is left as it was on entry.
        """
        total_start = time.perf_counter()
        logger.info(f"[Migration] Planning pass at t={self.clock.now()} over "
                    f"{len(vm_list)} VM(s) on {len(self.hosts)} host(s)")

        start = time.perf_counter()
        over_utilized_hosts = self.get_over_utilized_hosts()
        self.history.add_execution_time("host_selection", time.perf_counter() - start)
        self._log_over_utilized_hosts(over_utilized_hosts)

        owners = [(vm, vm.host) for vm in vm_list]
        snapshot = AllocationSnapshot.capture(self.hosts)
        try:
            start = time.perf_counter()
            vms_to_migrate, sources = self.get_vms_to_migrate_from_hosts(over_utilized_hosts)
            self.history.add_execution_time("vm_selection", time.perf_counter() - start)

            start = time.perf_counter()
            directives, unplaced = self.scheduler.place(vms_to_migrate, set(over_utilized_hosts), sources)
            self.history.add_execution_time("vm_reallocation", time.perf_counter() - start)

            plan = MigrationPlan(directives, unplaced)
            self.get_migration_map_from_under_utilized_hosts(over_utilized_hosts, plan)
        finally:
            self.restore_allocation(snapshot, owners)

        self.history.add_execution_time("total", time.perf_counter() - total_start)
        if self._ticks_per_pass:
            self.clock.advance(1)
        logger.info(f"[Migration] Plan: {len(plan)} migration(s), {len(plan.unplaced)} unplaced VM(s), "
                    f"{len(plan.skipped_hosts)} consolidation(s) cancelled")
        return plan

    def get_over_utilized_hosts(self):
        over_utilized_hosts = []
        now = self.clock.now()
        for host in self.hosts:
            if self.overload_detector.is_over_utilized(host):
                over_utilized_hosts.append(host)
            self.history.add_entry(host, self.overload_detector.metric(host), now)
        return over_utilized_hosts

    def get_switched_off_hosts(self):
        return [host for host in self.hosts if not host.active or host.cpu_utilization() == 0]

    def get_vms_to_migrate_from_hosts(self, over_utilized_hosts):
        """
        Evicts victims (for real) until each host is no longer over-utilized.
        Returns (vms, {vm: source host}).
        """
        vms_to_migrate = []
        sources = {}
        for host in over_utilized_hosts:
            while True:
                vm = self.vm_selection_policy.select_victim(host)
                if vm is None:
                    break
                if vm not in host.vms:
                    logger.warning(f"[Migration] Selection policy offered VM {vm.vm_id}, "
                                   f"which is not on Host {host.host_id}")
                    break
                vms_to_migrate.append(vm)
                sources[vm] = host
                host.vm_destroy(vm)
                if not self.overload_detector.is_over_utilized(host):
                    break
        return vms_to_migrate, sources

    def get_migration_map_from_under_utilized_hosts(self, over_utilized_hosts, plan):
        """Appends to `plan` the evacuations of under-utilized hosts that fully succeed."""
        switched_off_hosts = self.get_switched_off_hosts()

        # over-utilized + switched off + hosts already receiving VMs
        excluded_for_under_utilized = set(over_utilized_hosts) | set(switched_off_hosts) | set(plan.target_hosts())
        # over-utilized + switched off + hosts being evacuated
        excluded_for_placement = set(over_utilized_hosts) | set(switched_off_hosts)

        while len(excluded_for_under_utilized) < len(self.hosts):
            host = self.get_under_utilized_host(excluded_for_under_utilized)
            if host is None:
                break
            logger.info(f"[Migration] Under-utilized host: Host {host.host_id}")
            excluded_for_under_utilized.add(host)
            excluded_for_placement.add(host)

            vms = self.get_vms_to_migrate_from_under_utilized_host(host)
            if not vms:
                continue

            directives, unplaced = self.scheduler.place(vms, excluded_for_placement,
                                                        {vm: host for vm in vms}, consolidation=True)
            if unplaced:
                logger.info(f"[Migration] Not all VMs can be reallocated from Host {host.host_id}, "
                            f"reallocation cancelled")
                for directive in directives:
                    directive.host.vm_destroy(directive.vm)
                    directive.vm.host = host
                plan.skipped_hosts.append(host)
                continue

            excluded_for_under_utilized.update(d.host for d in directives)
            plan.extend(directives)

    def get_under_utilized_host(self, excluded_hosts):
        min_utilization = 1
        under_utilized_host = None
        for host in self.hosts:
            if host in excluded_hosts:
                continue
            utilization = host.cpu_utilization()
            if 0 < utilization < min_utilization and not self.are_all_vms_migrating_out_or_any_vm_migrating_in(host):
                min_utilization = utilization
                under_utilized_host = host
        return under_utilized_host

    @staticmethod
    def are_all_vms_migrating_out_or_any_vm_migrating_in(host):
        if any(vm in host.vms_migrating_in for vm in host.vms):
            return True
        return all(vm.in_migration for vm in host.vms)

    @staticmethod
    def get_vms_to_migrate_from_under_utilized_host(host):
        return [vm for vm in host.vms if not vm.in_migration]

    def restore_allocation(self, snapshot, owners=()):
        snapshot.restore(self.hosts)
        for vm, host in owners:
            if vm.host is not host:
                expected = host.host_id if host is not None else None
                logger.error(f"[Migration] VM {vm.vm_id} ended on {vm.host!r} instead of Host {expected}")
                raise AllocationRestoreError(vm.vm_id, expected, reason="owner changed")

    def _log_over_utilized_hosts(self, hosts):
        if hosts:
            logger.info(f"[Migration] Over-utilized hosts: {', '.join(str(h.host_id) for h in hosts)}")
        else:
            logger.info("[Migration] No over-utilized hosts")

    def utilization_history(self, host_id):
        return self.history.utilization_history(host_id)

    def metric_history(self, host_id):
        return self.history.metric_history(host_id)

    def time_history(self, host_id):
        return self.history.time_history(host_id)

    def execution_time_history(self, phase):
        return self.history.execution_time_history(phase)
