# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from typing import Dict, List, Optional, Set, Tuple

from eeco.utils import DottableDict

from .actuator import Actuator
from .common import MachineInfo, Placement, TaskRequirement, VmInfo
from .directory import ResourceDirectory
from .enums import CpuType, PlacementOutcome, Priority, Status, Tier, VmType
from .migration import MigrationCoordinator
from .partition import TierPartition
from .registry import VmRecord, VmRegistry
from .sla import SlaMonitor
from .tiers import TierManager

# A VM that can take a task right now, with the fresh engine view of it and of its host.
Candidate = Tuple[VmRecord, VmInfo, MachineInfo]


class PlacementPolicy:
    """Picks the VM hosting a new task, creating capacity when the running tier is full.

    The fallback chain is, in order: best fit, any compatible VM, capacity expansion,
    emergency placement and failure. Every step only considers VMs of the task's CPU
    architecture, and never a VM that is migrating.

    Args:
        directory (ResourceDirectory): Query layer.
        actuator (Actuator): Command layer.
        registry (VmRegistry): The controller's VMs, new VMs are added to it.
        partition (TierPartition): Only VMs on running machines are regular candidates.
        tiers (TierManager): Promotes a machine when no VM can take the task.
        coordinator (MigrationCoordinator): Source of the migrating set.
        sla_monitor (SlaMonitor): Maps the task SLA class to its priority.
        config (DottableDict): Controller configuration.
        logger: Logger used for decisions and diagnostics.
    """

    def __init__(
        self,
        directory: ResourceDirectory,
        actuator: Actuator,
        registry: VmRegistry,
        partition: TierPartition,
        tiers: TierManager,
        coordinator: MigrationCoordinator,
        sla_monitor: SlaMonitor,
        config: DottableDict,
        logger
    ):
        self._directory = directory
        self._actuator = actuator
        self._registry = registry
        self._partition = partition
        self._tiers = tiers
        self._coordinator = coordinator
        self._sla_monitor = sla_monitor
        self._logger = logger

        self._match_vm_type: bool = config.placement.match_vm_type
        self._outcomes: Dict[PlacementOutcome, int] = {outcome: 0 for outcome in PlacementOutcome}

    @property
    def outcomes(self) -> Dict[PlacementOutcome, int]:
        """Dict[PlacementOutcome, int]: Number of tasks per step of the fallback chain."""
        return dict(self._outcomes)

    def provision(self, machine_id: int, cpu: CpuType, vm_type: VmType) -> Optional[int]:
        """Create a VM, register it and attach it to the machine.

        Returns:
            int: The attached VM, None if it could not be created or attached.
        """
        created = self._actuator.create_vm(vm_type, cpu)
        if not created.ok:
            self._logger.warn(f"Unable to create a {vm_type.value} vm for {cpu.value}: {created.reason}")
            return None

        vm_id = created.value
        self._registry.add(VmRecord(vm_id, cpu, vm_type))
        attached = self._actuator.attach_vm(vm_id, machine_id)
        if not attached.ok:
            self._logger.warn(f"Unable to attach vm {vm_id} to machine {machine_id}: {attached.reason}")
            return None

        self._registry.attach(vm_id, machine_id)
        self._logger.info(f"Vm {vm_id} ({vm_type.value}, {cpu.value}) created on machine {machine_id}.")
        return vm_id

    def place(self, task_id: int, now: int) -> Placement:
        task_result = self._directory.task(task_id)
        if not task_result.ok:
            self._logger.warn(f"New task {task_id} not found, not placed.")
            return Placement(task_id, PlacementOutcome.FAILED)

        task = task_result.value
        priority = self._sla_monitor.priority_of(task.sla)
        rejected: Set[int] = set()
        candidates = self._candidates(task)

        placement = self._best_fit(task, priority, candidates, rejected)
        if placement is None:
            placement = self._compatible(task, priority, candidates, rejected)
        if placement is None:
            placement = self._expand(task, priority, now)
        if placement is None:
            placement = self._emergency(task, rejected)
        if placement is None:
            self._logger.warn(f"No {task.cpu.value} vm can take task {task_id}, task left unplaced.")
            placement = Placement(task_id, PlacementOutcome.FAILED)

        self._outcomes[placement.outcome] += 1
        if placement.placed:
            self._logger.info(
                f"Task {task_id} placed on vm {placement.vm_id} "
                f"({placement.outcome.value}, priority {placement.priority.name})."
            )
        return placement

    def _candidates(self, task: TaskRequirement) -> List[Candidate]:
        """Non-migrating VMs of the task architecture on running machines with room for the task."""
        candidates = []
        machines: Dict[int, Optional[MachineInfo]] = {}
        for vm in self._registry.pool(task.cpu):
            if vm.machine_id is None or self._coordinator.is_migrating(vm.vm_id):
                continue

            if self._partition.tier_of(vm.machine_id) != Tier.RUNNING:
                continue

            vm_result = self._directory.vm(vm.vm_id)
            if not vm_result.ok:
                continue

            if vm.machine_id not in machines:
                machine_result = self._directory.machine(vm.machine_id)
                machines[vm.machine_id] = machine_result.value if machine_result.ok else None

            machine = machines[vm.machine_id]
            if machine is None or not machine.memory_fits(task.memory):
                continue
            candidates.append((vm, vm_result.value, machine))
        return candidates

    def _try_add(self, vm: VmRecord, task: TaskRequirement, priority: Priority, rejected: Set[int]) -> bool:
        result = self._actuator.add_task(vm.vm_id, task.task_id, priority)
        if result.ok:
            return True

        if result.status == Status.REJECTED:
            rejected.add(vm.vm_id)
        self._logger.debug(f"Vm {vm.vm_id} did not take task {task.task_id}: {result.reason}")
        return False

    def _best_fit(
        self, task: TaskRequirement, priority: Priority, candidates: List[Candidate], rejected: Set[int]
    ) -> Optional[Placement]:
        matching = [
            (vm, info) for vm, info, _ in candidates
            if not self._match_vm_type or vm.vm_type == task.vm_type
        ]
        # Least loaded first, lowest id on ties.
        for vm, _ in sorted(matching, key=lambda pair: (len(pair[1].active_tasks), pair[0].vm_id)):
            if self._try_add(vm, task, priority, rejected):
                return Placement(task.task_id, PlacementOutcome.BEST_FIT, vm.vm_id, priority)
        return None

    def _compatible(
        self, task: TaskRequirement, priority: Priority, candidates: List[Candidate], rejected: Set[int]
    ) -> Optional[Placement]:
        for vm, _, _ in candidates:
            if vm.vm_id in rejected:
                continue

            if self._try_add(vm, task, priority, rejected):
                return Placement(task.task_id, PlacementOutcome.COMPATIBLE, vm.vm_id, priority)
        return None

    def _expand(self, task: TaskRequirement, priority: Priority, now: int) -> Optional[Placement]:
        machine_id = self._tiers.expand(task.cpu, now)
        if machine_id is None:
            self._logger.debug(f"No standby or off {task.cpu.value} machine to promote.")
            return None

        # A demoted machine keeps its VMs, they are reused before creating a new one.
        for vm in self._registry.on_machine(machine_id):
            if vm.cpu != task.cpu or self._coordinator.is_migrating(vm.vm_id):
                continue

            if self._match_vm_type and vm.vm_type != task.vm_type:
                continue

            if self._try_add(vm, task, priority, set()):
                return Placement(task.task_id, PlacementOutcome.EXPANDED, vm.vm_id, priority)

        vm_id = self.provision(machine_id, task.cpu, task.vm_type)
        if vm_id is None:
            return None

        result = self._actuator.add_task(vm_id, task.task_id, priority)
        if not result.ok:
            self._logger.warn(f"New vm {vm_id} did not take task {task.task_id}: {result.reason}")
            return None
        return Placement(task.task_id, PlacementOutcome.EXPANDED, vm_id, priority)

    def _emergency(self, task: TaskRequirement, rejected: Set[int]) -> Optional[Placement]:
        # Load and memory are ignored, the architecture and the running host are not.
        for vm in self._registry.pool(task.cpu):
            if vm.machine_id is None or vm.vm_id in rejected or self._coordinator.is_migrating(vm.vm_id):
                continue

            if self._partition.tier_of(vm.machine_id) != Tier.RUNNING:
                continue

            if self._try_add(vm, task, Priority.HIGH, rejected):
                self._logger.warn(f"Task {task.task_id} placed in emergency on vm {vm.vm_id}.")
                return Placement(task.task_id, PlacementOutcome.EMERGENCY, vm.vm_id, Priority.HIGH)
        return None
