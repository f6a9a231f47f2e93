import pytest

from datacenter import Host, VM
from tests.conftest import load, make_host, make_vm


class TestHostCapacity:
    def test_cpu_capacity_is_cores_times_core_mips(self):
        host = Host("H1", num_cores=2, core_capacity=1000, ram_capacity=4096, storage_capacity=100)
        assert host.cpu_capacity == 2000

    def test_cpu_may_be_oversubscribed(self, overloaded_pair):
        host_a, _, _ = overloaded_pair
        assert host_a.utilization_of_cpu_mips() == 1200
        assert host_a.requested_utilization() == pytest.approx(1.2)
        assert host_a.cpu_utilization() == 1.0

    def test_requested_mips_follow_demand_ratio(self):
        vm = VM("v", cpu=1000, ram=10, cpu_demand_ratio=0.25)
        assert vm.current_requested_mips() == 250
        vm.set_cpu_demand_ratio(1.7)
        assert vm.cpu_demand_ratio == 1.0

    def test_suitability_checks_free_cpu(self):
        host = make_host("H", mips=1000)
        load(host, 700)
        assert host.is_suitable_for_vm(make_vm("small", 300))
        assert not host.is_suitable_for_vm(make_vm("big", 301))

    def test_suitability_checks_ram_and_bw(self):
        host = make_host("H", ram=1000, bw=1000)
        assert not host.is_suitable_for_vm(make_vm("ram", 10, ram=1001))
        assert not host.is_suitable_for_vm(make_vm("bw", 10, bw=1001))


class TestHostAllocation:
    def test_create_refuses_when_ram_is_exhausted(self):
        host = make_host("H", ram=150)
        assert host.vm_create(make_vm("v1", 10, ram=100))
        assert not host.vm_create(make_vm("v2", 10, ram=100))
        assert len(host.vms) == 1

    def test_create_refuses_duplicates(self):
        host = make_host("H")
        vm = make_vm("v", 10)
        assert host.vm_create(vm)
        assert not host.vm_create(vm)

    def test_create_and_destroy_track_owner(self):
        host = make_host("H")
        vm = make_vm("v", 10)
        host.vm_create(vm)
        assert vm.host is host
        host.vm_destroy(vm)
        assert vm.host is None
        assert host.vms == []

    def test_destroy_all_then_reallocate_migrating_in(self):
        source = make_host("S")
        target = make_host("T")
        local, = load(target, 100)
        moving, = load(source, 200)
        target.add_migrating_in_vm(moving)
        assert moving.in_migration
        assert moving in target.vms

        target.vm_destroy_all()
        assert target.vms == []
        assert local.host is None
        assert moving.host is source

        target.reallocate_migrating_in_vms()
        assert target.vms == [moving]

    def test_remove_migrating_in_clears_flag(self):
        host = make_host("H")
        vm = make_vm("v", 10)
        host.add_migrating_in_vm(vm)
        host.remove_migrating_in_vm(vm)
        assert host.vms_migrating_in == []
        assert not vm.in_migration


class TestHostPower:
    def test_power_uses_capped_utilization(self, overloaded_pair):
        host_a, _, _ = overloaded_pair
        assert host_a.power() == pytest.approx(200)

    def test_switched_off_idle_host_draws_nothing(self):
        host = make_host("H")
        host.power_off()
        assert host.power_consumption() == 0.0
        host.power_on()
        assert host.power_consumption() == pytest.approx(100)


class TestMigrationOverhead:
    @pytest.fixture
    def receiving_host(self):
        host = make_host("H")
        load(host, 300)
        incoming = make_vm("incoming", 100)
        host.vm_create(incoming)
        host.add_migrating_in_vm(incoming)
        return host, incoming

    def test_overhead_only_in_planning_load(self, receiving_host):
        host, _ = receiving_host
        assert host.utilization_of_cpu_mips() == 400
        assert host.migration_overhead_mips() == pytest.approx(900)
        assert host.planning_cpu_mips() == pytest.approx(1300)

    def test_destroy_all_keeps_migrating_in_back_reference(self, receiving_host):
        host, incoming = receiving_host
        host.vm_destroy_all()
        assert incoming.host is host
        host.reallocate_migrating_in_vms()
        assert host.vms == [incoming]
        assert incoming.host is host
