import numpy as np
import pytest

from selection import VmSelectionPolicy
from tests.conftest import make_host, make_vm


@pytest.fixture
def busy_host():
    host = make_host("H")
    for vm in (make_vm("big", 600, ram=2000), make_vm("small", 100, ram=900), make_vm("mid", 300, ram=500)):
        host.vm_create(vm)
    return host


class TestVmSelectionPolicy:
    def test_minimum_migration_time_picks_least_ram(self, busy_host):
        assert VmSelectionPolicy().select_victim(busy_host).vm_id == "mid"

    def test_minimum_and_maximum_utilization(self, busy_host):
        assert VmSelectionPolicy("minimum_utilization").select_victim(busy_host).vm_id == "small"
        assert VmSelectionPolicy("maximum_utilization").select_victim(busy_host).vm_id == "big"

    def test_random_returns_a_resident(self, busy_host):
        policy = VmSelectionPolicy("random", rng=np.random.default_rng(3))
        assert policy.select_victim(busy_host) in busy_host.vms

    def test_vms_in_migration_are_never_offered(self, busy_host):
        for vm in busy_host.vms:
            if vm.vm_id != "big":
                vm.in_migration = True
        assert VmSelectionPolicy().select_victim(busy_host).vm_id == "big"

    def test_nothing_to_offer(self):
        assert VmSelectionPolicy().select_victim(make_host("empty")) is None

    def test_unknown_policy(self):
        with pytest.raises(ValueError):
            VmSelectionPolicy("biggest")
        with pytest.raises(ValueError):
            VmSelectionPolicy().set_policy("biggest")
