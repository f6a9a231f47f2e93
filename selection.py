# selection.py
import numpy as np

VM_SELECTION_POLICIES = ("minimum_migration_time", "minimum_utilization", "maximum_utilization", "random")


class VmSelectionPolicy:
    def __init__(self, policy="minimum_migration_time", rng=None):
        """
        Picks the next VM to evict from an over-utilized host.

        :param policy: "minimum_migration_time", "minimum_utilization",
            "maximum_utilization" or "random"
        :param rng: numpy Generator used by the "random" policy
        """
        if policy not in VM_SELECTION_POLICIES:
            raise ValueError(f"Unknown VM selection policy: {policy}")
        self.policy = policy
        self.rng = rng if rng is not None else np.random.default_rng()

    def select_victim(self, host):
        """
        Returns a VM currently on the host, or None when nothing can be moved.
        VMs already in migration are never offered.
        """
        candidates = self.migratable_vms(host)
        if not candidates:
            return None
        if self.policy == "minimum_migration_time":
            # Live migration time is dominated by the memory to copy
            return min(candidates, key=lambda vm: vm.ram)
        elif self.policy == "minimum_utilization":
            return min(candidates, key=lambda vm: vm.current_requested_mips())
        elif self.policy == "maximum_utilization":
            return max(candidates, key=lambda vm: vm.current_requested_mips())
        else:
            return candidates[int(self.rng.integers(len(candidates)))]

    @staticmethod
    def migratable_vms(host):
        return [vm for vm in host.vms if not vm.in_migration]

    def set_policy(self, policy):
        if policy not in VM_SELECTION_POLICIES:
            raise ValueError(f"Unknown VM selection policy: {policy}")
        self.policy = policy
