import numpy as np
import pytest

from binpacking import BinPackingPlacement, available_percent, knapsack_table, weight_percent
from config import PlannerConfig
from tests.conftest import load, make_host, make_vm


class TestWeights:
    def test_available_percent_floors_current_load(self):
        host = make_host("H")
        load(host, 255)
        assert available_percent(host) == 75

    def test_available_percent_never_negative(self, overloaded_pair):
        host_a, _, _ = overloaded_pair
        assert available_percent(host_a) == 0

    def test_weight_rounds_up(self):
        host = make_host("H")
        assert weight_percent(host, make_vm("v", 301)) == 31
        assert weight_percent(host, make_vm("w", 300)) == 30


class TestKnapsackTable:
    def test_best_subset_under_threshold(self, detector):
        host = make_host("H")
        vms = [make_vm("300", 300), make_vm("400", 400), make_vm("500", 500)]

        table = knapsack_table(host, vms, detector, 0.9)

        assert {vm.vm_id for vm in table.best_selection} == {"400", "500"}
        assert table.best_value == pytest.approx(90)
        assert host.vms == []

    def test_selection_respects_capacity(self, detector):
        host = make_host("H")
        load(host, 250)
        vms = [make_vm(str(m), m) for m in (100, 120, 150, 200, 330)]

        table = knapsack_table(host, vms, detector, 1.0)

        chosen = table.best_selection
        assert sum(weight_percent(host, vm) for vm in chosen) <= table.capacity
        assert host.utilization_of_cpu_mips() + sum(vm.cpu for vm in chosen) < 1000

    def test_values_never_decrease_with_more_candidates(self, detector):
        host = make_host("H")
        load(host, 100)
        vms = [make_vm(str(m), m) for m in (50, 150, 220, 310, 400)]

        table = knapsack_table(host, vms, detector, 0.95)

        assert np.all(table.values[1:] >= table.values[:-1])


class TestBinPackingPlacement:
    def test_single_host(self, detector):
        host = make_host("H")
        vms = [make_vm("300", 300), make_vm("400", 400), make_vm("500", 500)]
        placement = BinPackingPlacement([host], detector, PlannerConfig(utilization_threshold=0.9))

        directives, unplaced = placement.place(vms, set())

        assert {d.vm.vm_id for d in directives} == {"400", "500"}
        assert all(d.host is host for d in directives)
        assert [vm.vm_id for vm in unplaced] == ["300"]

    def test_busiest_host_is_filled_first(self, detector):
        busy, idle = make_host("busy"), make_host("idle")
        load(busy, 500)
        vms = [make_vm("200", 200), make_vm("300", 300), make_vm("400", 400)]
        placement = BinPackingPlacement([idle, busy], detector, PlannerConfig())

        directives, unplaced = placement.place(vms, set())

        assert [(d.vm.vm_id, d.host.host_id) for d in directives] == [
            ("400", "busy"), ("200", "idle"), ("300", "idle"),
        ]
        assert unplaced == []

    def test_no_useful_host(self, detector):
        host = make_host("H")
        vms = [make_vm("a", 100)]
        directives, unplaced = BinPackingPlacement([host], detector, PlannerConfig()).place(vms, {host})
        assert directives == [] and unplaced == vms


class TestMigrationOverheadCapacity:
    def test_migrating_in_vm_shrinks_free_capacity(self):
        host = make_host("H")
        load(host, 100)
        incoming = make_vm("incoming", 20)
        host.add_migrating_in_vm(incoming)
        assert available_percent(host) == 70
