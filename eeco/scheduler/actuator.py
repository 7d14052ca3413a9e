# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from eeco.utils.exception import CommandRejectedError, ResourceNotFoundError

from .common import Result
from .engine import AbsClusterEngine
from .enums import CpuPerformance, CpuType, PowerState, Priority, Status, VmType


class Actuator:
    """Command half of the cluster engine interface.

    Each command returns a ``Result`` so the policies decide on its status: ``NOT_FOUND``
    when the engine does not know an id, ``REJECTED`` when it refused the command.
    The actuator also counts the commands it got accepted, for the controller metrics.

    Args:
        engine (AbsClusterEngine): The cluster engine to command.
    """

    def __init__(self, engine: AbsClusterEngine):
        self._engine = engine

        self.vms_created: int = 0
        self.tasks_added: int = 0
        self.migrations_issued: int = 0
        self.state_changes_issued: int = 0
        self.performance_changes_issued: int = 0
        self.vms_shut_down: int = 0
        self.priority_changes_issued: int = 0

    def _call(self, command, *args) -> Result:
        try:
            return Result.success(command(*args))
        except ResourceNotFoundError as e:
            return Result(Status.NOT_FOUND, reason=str(e))
        except CommandRejectedError as e:
            return Result(Status.REJECTED, reason=str(e))

    def create_vm(self, vm_type: VmType, cpu: CpuType) -> Result[int]:
        result = self._call(self._engine.vm_create, vm_type, cpu)
        if result.ok:
            self.vms_created += 1
        return result

    def attach_vm(self, vm_id: int, machine_id: int) -> Result:
        return self._call(self._engine.vm_attach, vm_id, machine_id)

    def add_task(self, vm_id: int, task_id: int, priority: Priority) -> Result:
        result = self._call(self._engine.vm_add_task, vm_id, task_id, priority)
        if result.ok:
            self.tasks_added += 1
        return result

    def migrate_vm(self, vm_id: int, machine_id: int) -> Result:
        result = self._call(self._engine.vm_migrate, vm_id, machine_id)
        if result.ok:
            self.migrations_issued += 1
        return result

    def shutdown_vm(self, vm_id: int) -> Result:
        result = self._call(self._engine.vm_shutdown, vm_id)
        if result.ok:
            self.vms_shut_down += 1
        return result

    def set_machine_state(self, machine_id: int, state: PowerState) -> Result:
        result = self._call(self._engine.machine_set_state, machine_id, state)
        if result.ok:
            self.state_changes_issued += 1
        return result

    def set_machine_performance(self, machine_id: int, num_cpus: int, level: CpuPerformance) -> Result:
        """Apply the performance level to every core of the machine, stop at the first failing core."""
        for core_id in range(num_cpus):
            result = self._call(self._engine.machine_set_core_performance, machine_id, core_id, level)
            if not result.ok:
                return result
        self.performance_changes_issued += 1
        return Result.success()

    def set_task_priority(self, task_id: int, priority: Priority) -> Result:
        result = self._call(self._engine.set_task_priority, task_id, priority)
        if result.ok:
            self.priority_changes_issued += 1
        return result
