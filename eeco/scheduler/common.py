# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from typing import Generic, List, Optional, TypeVar

from .enums import (
    CpuPerformance, CpuType, MigrationReason, OperationStatus, PlacementOutcome, PowerState, Priority, SlaClass,
    Status, VmType
)

T = TypeVar("T")


class TaskRequirement:
    """Requirements of a task, read from the cluster engine when the task arrives.

    Args:
        task_id (int): The task id.
        cpu (CpuType): The CPU architecture the task is compiled for.
        vm_type (VmType): The VM image the task expects.
        memory (int): Memory required by the task.
        sla (SlaClass): Service level class of the task.
    """

    def __init__(self, task_id: int, cpu: CpuType, vm_type: VmType, memory: int, sla: SlaClass):
        self.task_id = task_id
        self.cpu = cpu
        self.vm_type = vm_type
        self.memory = memory
        self.sla = sla

    def __repr__(self):
        return "%s {task_id: %r, cpu: %r, vm_type: %r, memory: %r, sla: %r}" % \
            (self.__class__.__name__, self.task_id, self.cpu, self.vm_type, self.memory, self.sla)


class MachineInfo:
    """Snapshot of a physical machine, valid only inside the handler that queried it.

    Args:
        machine_id (int): The machine id.
        cpu (CpuType): CPU architecture of the machine.
        num_cpus (int): Number of cores.
        memory_size (int): Memory capacity.
        memory_used (int): Memory currently used by VMs and tasks.
        active_tasks (int): Number of tasks running on the machine.
        active_vms (int): Number of VMs attached to the machine.
        state (PowerState): Current power state.
        p_state (CpuPerformance): Current performance level of the cores.
    """

    def __init__(
        self,
        machine_id: int,
        cpu: CpuType,
        num_cpus: int,
        memory_size: int,
        memory_used: int,
        active_tasks: int,
        active_vms: int,
        state: PowerState,
        p_state: CpuPerformance
    ):
        self.machine_id = machine_id
        self.cpu = cpu
        self.num_cpus = num_cpus
        self.memory_size = memory_size
        self.memory_used = memory_used
        self.active_tasks = active_tasks
        self.active_vms = active_vms
        self.state = state
        self.p_state = p_state

    @property
    def utilization(self) -> float:
        """float: Active tasks per core."""
        if self.num_cpus <= 0:
            return 0.0
        return self.active_tasks / self.num_cpus

    def memory_fits(self, memory: int) -> bool:
        return self.memory_used + memory <= self.memory_size

    def __repr__(self):
        return "%s {machine_id: %r, cpu: %r, num_cpus: %r, memory: %r/%r, active_tasks: %r, state: %r}" % \
            (
                self.__class__.__name__,
                self.machine_id,
                self.cpu,
                self.num_cpus,
                self.memory_used,
                self.memory_size,
                self.active_tasks,
                self.state
            )


class VmInfo:
    """Snapshot of a VM as seen by the cluster engine.

    Args:
        vm_id (int): The VM id.
        cpu (CpuType): CPU architecture of the VM.
        vm_type (VmType): Image type of the VM.
        machine_id (int): Host machine, None if the VM is not attached.
        active_tasks (List[int]): Ids of the tasks running in the VM.
    """

    def __init__(self, vm_id: int, cpu: CpuType, vm_type: VmType, machine_id: Optional[int], active_tasks: List[int]):
        self.vm_id = vm_id
        self.cpu = cpu
        self.vm_type = vm_type
        self.machine_id = machine_id
        self.active_tasks = active_tasks

    def __repr__(self):
        return "%s {vm_id: %r, cpu: %r, vm_type: %r, machine_id: %r, active_tasks: %r}" % \
            (self.__class__.__name__, self.vm_id, self.cpu, self.vm_type, self.machine_id, self.active_tasks)


class Result(Generic[T]):
    """Status of a query or command, with the queried value when the status is OK."""

    def __init__(self, status: Status, value: T = None, reason: str = None):
        self.status = status
        self.value = value
        self.reason = reason

    @property
    def ok(self) -> bool:
        return self.status == Status.OK

    @classmethod
    def success(cls, value: T = None) -> "Result[T]":
        return cls(Status.OK, value)

    def __repr__(self):
        return "%s {status: %r, value: %r, reason: %r}" % \
            (self.__class__.__name__, self.status, self.value, self.reason)


class Placement:
    """Outcome of placing a task.

    Args:
        task_id (int): The placed task.
        outcome (PlacementOutcome): Step of the fallback chain that hosted the task.
        vm_id (int): Hosting VM, None if the placement failed.
        priority (Priority): Priority sent along with the task.
    """

    def __init__(self, task_id: int, outcome: PlacementOutcome, vm_id: int = None, priority: Priority = None):
        self.task_id = task_id
        self.outcome = outcome
        self.vm_id = vm_id
        self.priority = priority

    @property
    def placed(self) -> bool:
        return self.outcome != PlacementOutcome.FAILED

    def __repr__(self):
        return "%s {task_id: %r, outcome: %r, vm_id: %r, priority: %r}" % \
            (self.__class__.__name__, self.task_id, self.outcome, self.vm_id, self.priority)


class PendingOperation:
    """An asynchronous command waiting for its completion callback.

    Args:
        key (int): Id of the VM or machine the command was issued for.
        issued_at (int): Event time the command was issued at.
        reason (MigrationReason): Why a migration was started, None for power state changes.
        source (int): Machine a migrated VM leaves.
        target (int): Machine a migrated VM joins, or None for power state changes.
        power_state (PowerState): State requested from a machine, None for migrations.
    """

    def __init__(
        self,
        key: int,
        issued_at: int = None,
        reason: MigrationReason = None,
        source: int = None,
        target: int = None,
        power_state: PowerState = None
    ):
        self.key = key
        self.status = OperationStatus.PENDING
        self.issued_at = issued_at
        self.reason = reason
        self.source = source
        self.target = target
        self.power_state = power_state

    def __repr__(self):
        return "%s {key: %r, status: %r, reason: %r, source: %r, target: %r}" % \
            (self.__class__.__name__, self.key, self.status, self.reason, self.source, self.target)
