import matplotlib

matplotlib.use("Agg")

import pytest

from datacenter import Host, VM
from overload import ThresholdOverloadDetector


def make_host(host_id, mips=1000, ram=100000, bw=100000000, power_idle=100.0, power_max=200.0, **kwargs):
    """Single-core host with a linear power curve and plenty of RAM/bandwidth."""
    return Host(host_id, num_cores=1, core_capacity=mips, ram_capacity=ram, storage_capacity=100000,
                bw_capacity=bw, power_idle=power_idle, power_max=power_max, **kwargs)


def make_vm(vm_id, mips, ram=100, bw=0):
    return VM(vm_id, cpu=mips, ram=ram, storage=0, bw=bw)


def load(host, *mips, prefix=None):
    """Create one VM per demand on the host; returns the VMs."""
    prefix = prefix or f"{host.host_id}-vm"
    vms = []
    for i, demand in enumerate(mips):
        vm = make_vm(f"{prefix}{i}", demand)
        assert host.vm_create(vm)
        vms.append(vm)
    return vms


@pytest.fixture
def detector():
    return ThresholdOverloadDetector(1.0)


@pytest.fixture
def overloaded_pair():
    """Host A (1000 MIPS) holding 3 x 400 MIPS, host B (1000 MIPS) empty."""
    host_a = make_host("A")
    host_b = make_host("B")
    vms = load(host_a, 400, 400, 400)
    return host_a, host_b, vms
