# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from abc import ABC, abstractmethod

from .common import MachineInfo, TaskRequirement, VmInfo
from .enums import CpuPerformance, CpuType, PowerState, Priority, SlaClass, VmType


class AbsClusterEngine(ABC):
    """Abstract class for the cluster engine the controller is plugged into.

    The engine owns the simulated (or real) machines, VMs and tasks. The controller only reads
    them through the query methods and changes them through the command methods. Commands are
    asynchronous: a migration or a power state change is confirmed later, by the engine calling
    ``Controller.migration_complete`` or ``Controller.state_change_complete``.

    Implementations raise ``ResourceNotFoundError`` for an unknown machine, VM or task id, and
    ``CommandRejectedError`` when they refuse a command. No other exception is expected.
    """

    # Queries.

    @abstractmethod
    def machine_total(self) -> int:
        """int: Number of machines, machine ids are 0 to total - 1."""
        pass

    @abstractmethod
    def get_machine_info(self, machine_id: int) -> MachineInfo:
        pass

    @abstractmethod
    def get_vm_info(self, vm_id: int) -> VmInfo:
        pass

    @abstractmethod
    def get_task_info(self, task_id: int) -> TaskRequirement:
        pass

    @abstractmethod
    def is_sla_violation(self, task_id: int) -> bool:
        pass

    @abstractmethod
    def get_sla_report(self, sla: SlaClass) -> float:
        """float: Percentage of the tasks of the class that met their SLA."""
        pass

    @abstractmethod
    def get_cluster_energy(self) -> float:
        """float: Energy consumed by the cluster until now (KWh)."""
        pass

    # Commands.

    @abstractmethod
    def vm_create(self, vm_type: VmType, cpu: CpuType) -> int:
        """Create an unattached VM.

        Returns:
            int: Id of the new VM.
        """
        pass

    @abstractmethod
    def vm_attach(self, vm_id: int, machine_id: int):
        pass

    @abstractmethod
    def vm_add_task(self, vm_id: int, task_id: int, priority: Priority):
        pass

    @abstractmethod
    def vm_migrate(self, vm_id: int, machine_id: int):
        """Start moving a VM, the engine calls back ``migration_complete`` when it is done."""
        pass

    @abstractmethod
    def vm_shutdown(self, vm_id: int):
        pass

    @abstractmethod
    def machine_set_state(self, machine_id: int, state: PowerState):
        """Start a power state change, the engine calls back ``state_change_complete`` when it is done."""
        pass

    @abstractmethod
    def machine_set_core_performance(self, machine_id: int, core_id: int, level: CpuPerformance):
        pass

    @abstractmethod
    def set_task_priority(self, task_id: int, priority: Priority):
        pass
