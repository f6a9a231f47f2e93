# Helper.py

from datacenter import Host, VM
from power_models import SpecPowerModel, HP_PROLIANT_G4, HP_PROLIANT_G5
import random

# ====================
# Host Configuration
# ====================
HOST_TYPES = 2
HOST_MIPS = [1860, 2660]
HOST_PES = [2, 2]
HOST_RAM = [4096, 4096]
HOST_STORAGE = 1000000
HOST_POWER = [HP_PROLIANT_G4, HP_PROLIANT_G5]
HOST_POWER_NAMES = ["HpProLiantMl110G4Xeon3040", "HpProLiantMl110G5Xeon3075"]

# Bandwidth ladder (bit/s): 80 Mbit/s plus 3 Mbit/s per step, repeating every 20 hosts
HOST_BW_BASE = 80000000
HOST_BW_STEP = 3000000
HOST_BW_LEVELS = 20


def host_bandwidth(index):
    return HOST_BW_BASE + HOST_BW_STEP * (index % HOST_BW_LEVELS)


def create_host_list(num_hosts):
    hosts = []
    for i in range(num_hosts):
        type_id = i % HOST_TYPES

        host = Host(
            host_id=i,
            num_cores=HOST_PES[type_id],
            core_capacity=HOST_MIPS[type_id],
            ram_capacity=HOST_RAM[type_id],
            storage_capacity=HOST_STORAGE,
            bw_capacity=host_bandwidth(i),
            power_model=SpecPowerModel(HOST_POWER[type_id], name=HOST_POWER_NAMES[type_id])
        )
        hosts.append(host)
    return hosts


# ====================
# VM Configuration
# ====================
VM_TYPES = 4
VM_MIPS = [2500, 2000, 1000, 500]
VM_PES  = [1,    1,    1,    1]
VM_RAM  = [870,  1740, 1740, 613]
VM_BW   = 100000  # 100 Kbit/s
VM_SIZE = 2500    # 2.5 GB


def create_vm_list(num_vms, start_id=0, cpu_demand_ratio=1.0, rng=None):
    """
    :param num_vms: Number of VMs to create
    :param start_id: vm_id of the first VM
    :param cpu_demand_ratio: Initial fraction of each VM's MIPS requested
    :param rng: random.Random used to draw VM types; defaults to the random module
    """
    rng = rng or random
    vm_list = []
    for i in range(num_vms):
        vm_type = rng.randint(0, VM_TYPES - 1)
        vm_id = start_id + i
        cpu = VM_MIPS[vm_type] * VM_PES[vm_type]
        vm = VM(vm_id, cpu=cpu, ram=VM_RAM[vm_type], storage=VM_SIZE, bw=VM_BW,
                cpu_demand_ratio=cpu_demand_ratio)
        vm_list.append(vm)
    return vm_list


def allocate_round_robin(vms, hosts):
    """Bootstrap placement: each VM on the next host that admits it. Returns the VMs left out."""
    left_out = []
    start = 0
    for vm in vms:
        for offset in range(len(hosts)):
            host = hosts[(start + offset) % len(hosts)]
            if host.vm_create(vm):
                start = (start + offset + 1) % len(hosts)
                break
        else:
            left_out.append(vm)
    return left_out
