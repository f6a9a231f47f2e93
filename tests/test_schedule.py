import pytest

from config import PlannerConfig
from schedule import GreedyPlacement, PlacementScheduler
from tests.conftest import load, make_host, make_vm


def greedy(hosts, detector, **settings):
    return GreedyPlacement(hosts, detector, PlannerConfig(**settings))


class TestGreedyPlacement:
    def test_least_power_increase_wins(self, detector):
        cheap = make_host("cheap", power_idle=100, power_max=200)
        steep = make_host("steep", power_idle=100, power_max=300)
        load(cheap, 100)
        load(steep, 100)
        vm = make_vm("v", 200)

        directives, unplaced = greedy([steep, cheap], detector).place([vm], set())

        assert [(d.vm, d.host) for d in directives] == [(vm, cheap)]
        assert unplaced == []
        assert vm.host is cheap

    def test_threshold_rejects_cheaper_host(self, detector):
        cheap = make_host("cheap", power_idle=100, power_max=200)
        steep = make_host("steep", power_idle=100, power_max=300)
        load(cheap, 400)
        load(steep, 100)

        host = greedy([cheap, steep], detector, utilization_threshold=0.5).find_host_for_vm(make_vm("v", 200), set())

        assert host is steep

    def test_best_fit_picks_highest_prediction(self, detector):
        fuller, emptier = make_host("fuller"), make_host("emptier")
        load(fuller, 600)
        load(emptier, 200)
        host = greedy([emptier, fuller], detector, best_fit_host=True).find_host_for_vm(make_vm("v", 300), set())
        assert host is fuller

    def test_excluded_hosts_are_never_chosen(self, detector):
        only = make_host("only")
        host = greedy([only], detector).find_host_for_vm(make_vm("v", 10), {only})
        assert host is None

    def test_out_of_range_power_makes_host_ineligible(self, detector):
        oversold = make_host("oversold", cpu_oversub=2.0)
        vm = make_vm("v", 1500)
        assert oversold.is_suitable_for_vm(vm)

        directives, unplaced = greedy([oversold], detector).place([vm], set())
        assert directives == [] and unplaced == [vm]

        large = make_host("large", mips=2000)
        assert greedy([oversold, large], detector).find_host_for_vm(vm, set()) is large

    def test_unplaced_vm_does_not_stop_the_batch(self, detector):
        host = make_host("H")
        huge, small = make_vm("huge", 2000), make_vm("small", 100)

        directives, unplaced = greedy([host], detector).place([small, huge], set())

        assert [d.vm for d in directives] == [small]
        assert unplaced == [huge]

    @pytest.mark.parametrize("vm_increase, expected", [(False, ["c", "b", "a"]), (True, ["a", "b", "c"])])
    def test_placement_order(self, detector, vm_increase, expected):
        host = make_host("H", mips=10000)
        vms = [make_vm("a", 100), make_vm("c", 300), make_vm("b", 200)]
        directives, _ = greedy([host], detector, vm_increase=vm_increase).place(vms, set())
        assert [d.vm.vm_id for d in directives] == expected


class TestPlacementScheduler:
    @pytest.fixture
    def hosts(self):
        return [make_host("H1"), make_host("H2")]

    def test_fixed_strategy(self, hosts, detector):
        scheduler = PlacementScheduler(hosts, detector, PlannerConfig(placement="bin_packing"))
        assert scheduler.select_strategy([make_vm("v", 1)], set()) == "bin_packing"

    def test_auto_uses_swarm_above_threshold(self, hosts, detector):
        vms = [make_vm("a", 1), make_vm("b", 1)]
        scheduler = PlacementScheduler(hosts, detector, PlannerConfig(swarm_threshold=1))
        assert scheduler.select_strategy(vms, set()) == "swarm"
        assert scheduler.select_strategy(vms, set(), consolidation=True) == "greedy"

    def test_auto_uses_bin_packing_from_ratio(self, hosts, detector):
        vms = [make_vm("a", 1), make_vm("b", 1)]
        scheduler = PlacementScheduler(hosts, detector, PlannerConfig(bin_packing_ratio=1.5))
        assert scheduler.select_strategy(vms, set()) == "greedy"
        assert scheduler.select_strategy(vms, {hosts[0]}) == "bin_packing"

    def test_empty_batch(self, hosts, detector):
        assert PlacementScheduler(hosts, detector, PlannerConfig()).place([], set()) == ([], [])

    def test_unknown_strategy(self, hosts, detector):
        scheduler = PlacementScheduler(hosts, detector, PlannerConfig(placement="first_fit"))
        with pytest.raises(ValueError):
            scheduler.select_strategy([make_vm("v", 1)], set())
        with pytest.raises(ValueError):
            scheduler.set_policy("first_fit")

    def test_set_policy_reaches_every_strategy(self, hosts, detector):
        scheduler = PlacementScheduler(hosts, detector, PlannerConfig())
        scheduler.set_policy("swarm")
        assert scheduler.config.placement == "swarm"
        assert all(s.config.placement == "swarm" for s in scheduler.strategies.values())
