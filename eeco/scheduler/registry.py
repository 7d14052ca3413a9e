# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from collections import defaultdict
from typing import Dict, Iterator, List, Optional

from .enums import CpuType, VmType


class VmRecord:
    """A VM created by the controller.

    Args:
        vm_id (int): The VM id returned by the engine.
        cpu (CpuType): CPU architecture of the VM.
        vm_type (VmType): Image type of the VM.
        machine_id (int): Host machine, None until attached.
    """

    def __init__(self, vm_id: int, cpu: CpuType, vm_type: VmType, machine_id: int = None):
        self.vm_id = vm_id
        self.cpu = cpu
        self.vm_type = vm_type
        self.machine_id = machine_id
        self.shut_down = False

    def __repr__(self):
        return "%s {vm_id: %r, cpu: %r, vm_type: %r, machine_id: %r}" % \
            (self.__class__.__name__, self.vm_id, self.cpu, self.vm_type, self.machine_id)


class VmRegistry:
    """All the VMs owned by the controller, pooled by CPU architecture.

    Pools keep creation order, so a scan over a pool is deterministic.
    """

    def __init__(self):
        self._vms: Dict[int, VmRecord] = {}
        self._pools: Dict[CpuType, List[int]] = defaultdict(list)

    def __len__(self) -> int:
        return len(self._vms)

    def __contains__(self, vm_id: int) -> bool:
        return vm_id in self._vms

    def __iter__(self) -> Iterator[VmRecord]:
        return iter(list(self._vms.values()))

    def add(self, record: VmRecord):
        self._vms[record.vm_id] = record
        self._pools[record.cpu].append(record.vm_id)

    def get(self, vm_id: int) -> Optional[VmRecord]:
        return self._vms.get(vm_id, None)

    def pool(self, cpu: CpuType) -> List[VmRecord]:
        """Live VMs of the architecture, in creation order."""
        return [self._vms[vm_id] for vm_id in self._pools.get(cpu, []) if not self._vms[vm_id].shut_down]

    def on_machine(self, machine_id: int) -> List[VmRecord]:
        return [vm for vm in self._vms.values() if vm.machine_id == machine_id and not vm.shut_down]

    def attach(self, vm_id: int, machine_id: int):
        self._vms[vm_id].machine_id = machine_id

    def mark_shut_down(self, vm_id: int):
        self._vms[vm_id].shut_down = True
