# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from typing import Dict, Iterable

from eeco.utils.exception import ResourceNotFoundError

from .common import MachineInfo, Result, TaskRequirement, VmInfo
from .engine import AbsClusterEngine
from .enums import SlaClass, Status


class ResourceDirectory:
    """Read-only accessors over the cluster engine.

    Every accessor goes to the engine, nothing is cached: active task counts and memory usage
    change behind the controller's back between events. An unknown id is an expected answer,
    reported as ``Status.NOT_FOUND`` instead of an exception.

    Args:
        engine (AbsClusterEngine): The cluster engine to query.
    """

    def __init__(self, engine: AbsClusterEngine):
        self._engine = engine

    def machine_total(self) -> int:
        return self._engine.machine_total()

    def machine(self, machine_id: int) -> Result[MachineInfo]:
        try:
            return Result.success(self._engine.get_machine_info(machine_id))
        except ResourceNotFoundError as e:
            return Result(Status.NOT_FOUND, reason=str(e))

    def machines(self, machine_ids: Iterable[int]) -> Dict[int, MachineInfo]:
        """Snapshot of the given machines, unknown ids are left out."""
        snapshot = {}
        for machine_id in machine_ids:
            result = self.machine(machine_id)
            if result.ok:
                snapshot[machine_id] = result.value
        return snapshot

    def vm(self, vm_id: int) -> Result[VmInfo]:
        try:
            return Result.success(self._engine.get_vm_info(vm_id))
        except ResourceNotFoundError as e:
            return Result(Status.NOT_FOUND, reason=str(e))

    def task(self, task_id: int) -> Result[TaskRequirement]:
        try:
            return Result.success(self._engine.get_task_info(task_id))
        except ResourceNotFoundError as e:
            return Result(Status.NOT_FOUND, reason=str(e))

    def is_sla_violation(self, task_id: int) -> Result[bool]:
        try:
            return Result.success(self._engine.is_sla_violation(task_id))
        except ResourceNotFoundError as e:
            return Result(Status.NOT_FOUND, reason=str(e))

    def sla_report(self, sla: SlaClass) -> float:
        return self._engine.get_sla_report(sla)

    def cluster_energy(self) -> float:
        return self._engine.get_cluster_energy()
