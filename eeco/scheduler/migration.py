# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from typing import Dict, List, Optional, Set, Tuple

from eeco.utils import DottableDict

from .actuator import Actuator
from .common import MachineInfo, PendingOperation, VmInfo
from .directory import ResourceDirectory
from .enums import MigrationReason, Tier
from .partition import TierPartition
from .pending import PendingOperationTable
from .registry import VmRecord, VmRegistry


class MigrationCoordinator:
    """Decides which VM moves where, and makes sure a VM never has two migrations in flight.

    A VM enters the migrating set in the same step its migrate command is issued, and leaves it
    only when the engine confirms the migration. A machine that is the source or the target of
    an in-flight migration is not picked again by rebalancing or consolidation.

    Args:
        directory (ResourceDirectory): Query layer.
        actuator (Actuator): Command layer.
        registry (VmRegistry): The controller's VMs.
        partition (TierPartition): Machine tiers, only running machines are migration targets.
        config (DottableDict): Controller configuration.
        logger: Logger used for decisions and diagnostics.
    """

    def __init__(
        self,
        directory: ResourceDirectory,
        actuator: Actuator,
        registry: VmRegistry,
        partition: TierPartition,
        config: DottableDict,
        logger
    ):
        self._directory = directory
        self._actuator = actuator
        self._registry = registry
        self._partition = partition
        self._logger = logger

        self._overload: float = config.thresholds.overload
        self._underload: float = config.thresholds.underload
        self._consolidation: float = config.thresholds.consolidation
        self._rescue_ratio: float = config.thresholds.rescue_ratio
        self._memory_headroom: float = config.thresholds.memory_headroom

        self._operations = PendingOperationTable(exclusive=True)
        self.migrations_completed: int = 0

    @property
    def migrating_vms(self) -> Set[int]:
        """Set[int]: Ids of the VMs with a migration in flight."""
        return {operation.key for operation in self._operations.pending()}

    def is_migrating(self, vm_id: int) -> bool:
        return self._operations.is_pending(vm_id)

    def busy_machines(self) -> Set[int]:
        """Set[int]: Machines that are the source or the target of an in-flight migration."""
        busy = set()
        for operation in self._operations.pending():
            busy.add(operation.source)
            busy.add(operation.target)
        return busy

    def complete(self, vm_id: int, now: int) -> bool:
        """Clear a VM from the migrating set once the engine confirms its migration."""
        operation = self._operations.confirm(vm_id)
        if operation is None:
            self._logger.warn(f"Migration completion for vm {vm_id} which is not migrating, ignored.")
            return False

        if vm_id in self._registry:
            self._registry.attach(vm_id, operation.target)
        self.migrations_completed += 1
        self._logger.info(
            f"Vm {vm_id} migrated from machine {operation.source} to {operation.target} "
            f"({operation.reason.value}, {now - operation.issued_at} ticks)."
        )
        return True

    def _start(self, vm: VmRecord, target_id: int, reason: MigrationReason, now: int) -> bool:
        if self.is_migrating(vm.vm_id):
            return False

        self._operations.begin(
            PendingOperation(vm.vm_id, issued_at=now, reason=reason, source=vm.machine_id, target=target_id)
        )
        result = self._actuator.migrate_vm(vm.vm_id, target_id)
        if not result.ok:
            self._operations.discard(vm.vm_id)
            self._logger.warn(f"Migration of vm {vm.vm_id} to machine {target_id} not started: {result.reason}")
            return False

        self._logger.info(f"Migrating vm {vm.vm_id} from machine {vm.machine_id} to {target_id} ({reason.value}).")
        return True

    def _movable_vms(self, machine_id: int) -> List[Tuple[VmRecord, VmInfo]]:
        """VMs on the machine that are not migrating, checked against a fresh engine view."""
        movable = []
        for vm in self._registry.on_machine(machine_id):
            if self.is_migrating(vm.vm_id):
                continue

            result = self._directory.vm(vm.vm_id)
            if not result.ok or result.value.machine_id != machine_id:
                continue
            movable.append((vm, result.value))
        return movable

    def _fits(self, target: MachineInfo, moved_tasks: int) -> bool:
        if target.num_cpus <= 0:
            return False
        return (target.active_tasks + moved_tasks) / target.num_cpus <= self._overload

    def rebalance(self, snapshot: Dict[int, MachineInfo], now: int) -> int:
        """Move load off overloaded machines, at most one migration per overloaded machine.

        Args:
            snapshot (Dict[int, MachineInfo]): Running machines eligible this tick.
            now (int): Current event time.

        Returns:
            int: Number of migrations started.
        """
        busy = self.busy_machines()
        overloaded = sorted(
            (machine_id for machine_id, info in snapshot.items() if info.utilization > self._overload),
            key=lambda machine_id: (-snapshot[machine_id].utilization, machine_id)
        )

        started = 0
        for source_id in overloaded:
            if source_id in busy:
                continue

            source = snapshot[source_id]
            targets = sorted(
                (
                    info for machine_id, info in snapshot.items()
                    if machine_id != source_id and machine_id not in busy
                    and info.cpu == source.cpu and info.utilization < self._underload
                ),
                key=lambda info: (info.utilization, info.machine_id)
            )
            if len(targets) == 0:
                self._logger.debug(f"No underutilized {source.cpu.value} machine to unload machine {source_id}.")
                continue

            target = targets[0]
            vm = self._pick_rebalanced_vm(source_id, target)
            if vm is None:
                continue

            if self._start(vm, target.machine_id, MigrationReason.REBALANCE, now):
                started += 1
                busy.update((source_id, target.machine_id))
        return started

    def _pick_rebalanced_vm(self, source_id: int, target: MachineInfo) -> Optional[VmRecord]:
        """Largest VM the target can take without being overloaded itself, else the smallest one."""
        loaded = sorted(
            ((vm, len(info.active_tasks)) for vm, info in self._movable_vms(source_id) if len(info.active_tasks) > 0),
            key=lambda pair: (-pair[1], pair[0].vm_id)
        )
        if len(loaded) == 0:
            return None

        for vm, tasks in loaded:
            if self._fits(target, tasks):
                return vm
        return min(loaded, key=lambda pair: (pair[1], pair[0].vm_id))[0]

    def consolidate(self, snapshot: Dict[int, MachineInfo], now: int) -> bool:
        """Move one VM from the least utilized machine onto the most utilized one that has room.

        Only one consolidation migration is in flight at any time.

        Args:
            snapshot (Dict[int, MachineInfo]): Running machines eligible this tick.
            now (int): Current event time.

        Returns:
            bool: If a migration was started.
        """
        if any(operation.reason == MigrationReason.CONSOLIDATION for operation in self._operations.pending()):
            self._logger.debug("Consolidation already in flight, skipped.")
            return False

        busy = self.busy_machines()
        candidates = {machine_id: info for machine_id, info in snapshot.items() if machine_id not in busy}
        sources = sorted(
            (info for info in candidates.values() if info.utilization < self._consolidation),
            key=lambda info: (info.utilization, info.machine_id)
        )

        for source in sources:
            movable = self._movable_vms(source.machine_id)
            if len(movable) == 0:
                continue

            targets = sorted(
                (
                    info for info in candidates.values()
                    if info.machine_id != source.machine_id and info.cpu == source.cpu
                    and info.utilization > source.utilization
                ),
                key=lambda info: (-info.utilization, info.machine_id)
            )
            for target in targets:
                for vm, info in movable:
                    if not self._fits(target, len(info.active_tasks)):
                        continue

                    if self._start(vm, target.machine_id, MigrationReason.CONSOLIDATION, now):
                        return True
        return False

    def relieve_memory(self, machine_id: int, now: int) -> bool:
        """Move one VM off a machine that raised a memory warning.

        The target is the first running machine of the same architecture using at most
        ``memory_headroom`` of its memory.
        """
        for vm, _ in self._movable_vms(machine_id):
            for target_id in self._partition.members(Tier.RUNNING, cpu=vm.cpu):
                if target_id == machine_id:
                    continue

                result = self._directory.machine(target_id)
                if not result.ok:
                    continue

                target = result.value
                if target.memory_used > target.memory_size * self._memory_headroom:
                    continue

                if self._start(vm, target_id, MigrationReason.MEMORY_PRESSURE, now):
                    return True

        self._logger.warn(f"Unable to relieve memory pressure on machine {machine_id}.")
        return False

    def find_host(self, task_id: int) -> Optional[Tuple[VmRecord, VmInfo]]:
        """The controller VM currently running the task, if any."""
        for vm in self._registry:
            if vm.shut_down:
                continue

            result = self._directory.vm(vm.vm_id)
            if result.ok and task_id in result.value.active_tasks:
                return vm, result.value
        return None

    def rescue(self, task_id: int, now: int) -> bool:
        """Move the VM of a task violating its SLA to a clearly less utilized machine."""
        hosting = self.find_host(task_id)
        if hosting is None:
            self._logger.info(f"Task {task_id} is not hosted by any controller VM, no rescue.")
            return False

        vm, _ = hosting
        if self.is_migrating(vm.vm_id):
            self._logger.debug(f"Vm {vm.vm_id} of task {task_id} is already migrating.")
            return False

        source = self._directory.machine(vm.machine_id)
        if not source.ok:
            self._logger.warn(f"Host machine {vm.machine_id} of vm {vm.vm_id} not found, no rescue.")
            return False

        limit = source.value.utilization * self._rescue_ratio
        targets = self._directory.machines(
            machine_id for machine_id in self._partition.members(Tier.RUNNING, cpu=vm.cpu)
            if machine_id != vm.machine_id
        )
        eligible = sorted(
            (info for info in targets.values() if info.utilization < limit),
            key=lambda info: (info.utilization, info.machine_id)
        )
        if len(eligible) == 0:
            self._logger.info(f"No machine below {limit:.2f} utilization to rescue task {task_id}.")
            return False

        return self._start(vm, eligible[0].machine_id, MigrationReason.SLA_RESCUE, now)
