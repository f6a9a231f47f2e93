# capacity.py
from contextlib import contextmanager


@contextmanager
def trial_allocation(host, *vms):
    """
    Temporarily create VMs on a host to evaluate something about the result.

    VMs are created in order; creation stops at the first refusal. Yields True
    when every VM was created. On exit (normal or exceptional) exactly the VMs
    created here are destroyed and each VM gets its previous host back.
    """
    created = []
    previous_hosts = {}
    try:
        for vm in vms:
            previous_hosts[id(vm)] = vm.host
            if not host.vm_create(vm):
                break
            created.append(vm)
        yield len(created) == len(vms)
    finally:
        for vm in reversed(created):
            host.vm_destroy(vm)
            vm.host = previous_hosts[id(vm)]


def predict_over_utilized(host, vm, detector, threshold=None):
    """
    Would the host be over-utilized once the VM is added?

    A refused creation counts as over-utilized. With threshold=None the
    detector's own cutoff is used.
    """
    with trial_allocation(host, vm) as created:
        if not created:
            return True
        if threshold is None:
            return detector.is_over_utilized(host)
        return detector.is_over_utilized_threshold(host, threshold)


def predicted_utilization_after_allocation(host, vms, detector):
    with trial_allocation(host, *vms) as created:
        if not created:
            return 1.0
        return detector.predict_utilization(host)


def utilization_after_allocation(host, vm):
    return (host.planning_cpu_mips() + vm.current_requested_mips()) / host.cpu_capacity


def power_after_allocation(host, vm):
    """Raises InvalidUtilization when the projected utilization is above 1."""
    return host.power_model.power(utilization_after_allocation(host, vm))


def sort_by_cpu_utilization_decrease(hosts):
    return sorted(hosts, key=lambda h: h.planning_cpu_mips(), reverse=True)


def can_receive(host, vm, detector, threshold):
    """Suitable for the VM, and not pushed over the threshold by it (idle hosts always pass that check)."""
    if not host.is_suitable_for_vm(vm):
        return False
    if host.planning_cpu_mips() != 0 and predict_over_utilized(host, vm, detector, threshold):
        return False
    return True


def useful_hosts(hosts, vms, excluded_hosts, detector, threshold):
    """Hosts outside excluded_hosts that could receive every one of the VMs on its own."""
    return [host for host in hosts
            if host not in excluded_hosts and all(can_receive(host, vm, detector, threshold) for vm in vms)]
