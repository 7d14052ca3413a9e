# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

import os
from typing import Callable, Dict, Set

from yaml import safe_load

from eeco.utils import DottableDict, Logger, convert_dottable, merge_config
from eeco.utils.exception import InvalidConfigError, InvalidLifecycleError, InvariantViolationError

from .actuator import Actuator
from .common import Placement
from .directory import ResourceDirectory
from .engine import AbsClusterEngine
from .enums import ControllerState, CpuType, Events, PlacementOutcome, Tier, VmType
from .helpers import DocableDict
from .migration import MigrationCoordinator
from .partition import TierPartition
from .placement import PlacementPolicy
from .registry import VmRegistry
from .sla import SlaMonitor
from .tiers import TierManager

metrics_desc = """
Controller metrics, accumulated since init. It contains following keys:

placed_tasks (int): Tasks placed by any step of the fallback chain.
best_fit_placements (int): Tasks placed on the least loaded matching VM.
compatible_placements (int): Tasks placed on the first compatible VM.
expanded_placements (int): Tasks placed on a VM created on a freshly promoted machine.
emergency_placements (int): Tasks forced onto any VM of their architecture, at high priority.
failed_placements (int): Tasks no VM could take.
migrations_issued (int): Migration commands accepted by the engine.
migrations_completed (int): Migrations confirmed by the engine.
state_changes_issued (int): Machine power state commands accepted by the engine.
performance_changes_issued (int): Machines whose core performance level was changed.
sla_violations (int): Completed tasks that violated their SLA.
sla_rescues (int): Migrations started to rescue a task violating its SLA.
vms_created (int): VMs created by the controller.
vms_shut_down (int): VMs shut down by the controller.
tasks_added (int): Tasks the engine accepted on a controller VM.
priority_changes_issued (int): Task priorities raised after an SLA warning.
running_machines (int): Current size of the running tier.
standby_machines (int): Current size of the standby tier.
off_machines (int): Current size of the off tier.
"""

# Lifecycle state each state may move to.
LIFECYCLE_TRANSITIONS = {
    ControllerState.UNINITIALIZED: ControllerState.RUNNING,
    ControllerState.RUNNING: ControllerState.SHUTTING_DOWN,
    ControllerState.SHUTTING_DOWN: ControllerState.STOPPED,
}


class Controller:
    """Placement and power management controller, driven by the events of a cluster engine.

    The engine calls ``init`` once, then the event entry points, then ``shutdown``.
    Event entry points are only served while the controller is running, and an invariant
    violation inside a handler is logged at error level instead of being raised to the engine.

    Args:
        engine (AbsClusterEngine): The cluster engine the controller queries and commands.
        config (dict): Overrides of the default configuration (``config.yml`` next to this module).
            Defaults to None, which keeps every default.
        logger (Logger): Logger shared by all components. Defaults to None, which creates
            a ``Logger`` tagged ``eeco``.
    """

    def __init__(self, engine: AbsClusterEngine, config: dict = None, logger: Logger = None):
        self._logger = logger if logger is not None else Logger(tag="eeco")
        self._config = self._load_config(config)
        self._default_vm_types = self._parse_default_vm_types(self._config)

        self._directory = ResourceDirectory(engine)
        self._actuator = Actuator(engine)
        self._registry = VmRegistry()
        self._partition = TierPartition()
        self._coordinator = MigrationCoordinator(
            self._directory, self._actuator, self._registry, self._partition, self._config, self._logger
        )
        self._tiers = TierManager(
            self._directory, self._actuator, self._partition, self._coordinator, self._config, self._logger
        )
        self._sla_monitor = SlaMonitor(self._directory, self._actuator, self._coordinator, self._logger)
        self._placement = PlacementPolicy(
            self._directory, self._actuator, self._registry, self._partition, self._tiers,
            self._coordinator, self._sla_monitor, self._config, self._logger
        )

        self._state = ControllerState.UNINITIALIZED
        self._handlers: Dict[Events, Callable] = {}
        self._register_event_handlers()

    @staticmethod
    def _load_config(overrides: dict) -> DottableDict:
        with open(os.path.join(os.path.dirname(__file__), "config.yml")) as fp:
            defaults = safe_load(fp)

        try:
            merged = merge_config(defaults, overrides or {})
        except KeyError as e:
            raise InvalidConfigError(f"Unknown configuration key {e}") from e

        config = convert_dottable(merged)
        if config.tiers.min_running > config.tiers.max_running:
            raise InvalidConfigError("tiers.min_running is larger than tiers.max_running")
        if not config.thresholds.underload < config.thresholds.overload:
            raise InvalidConfigError("thresholds.underload must be lower than thresholds.overload")
        if len(config.performance_bands) != 3:
            raise InvalidConfigError("performance_bands needs one lower bound for each of P0, P1 and P2")
        return config

    @staticmethod
    def _parse_default_vm_types(config: DottableDict) -> Dict[CpuType, VmType]:
        try:
            default = VmType[config.vm.default_type]
            vm_types = {cpu: default for cpu in CpuType}
            for cpu, vm_type in config.vm.default_type_by_cpu.items():
                vm_types[CpuType[cpu]] = VmType[vm_type]
        except KeyError as e:
            raise InvalidConfigError(f"Unknown cpu or vm type {e} in vm configuration") from e
        return vm_types

    def _register_event_handlers(self):
        self._handlers[Events.NEW_TASK] = self._on_new_task
        self._handlers[Events.TASK_COMPLETE] = self._on_task_complete
        self._handlers[Events.MIGRATION_COMPLETE] = self._on_migration_complete
        self._handlers[Events.PERIODIC_CHECK] = self._on_periodic_check
        self._handlers[Events.MEMORY_WARNING] = self._on_memory_warning
        self._handlers[Events.SLA_WARNING] = self._on_sla_warning
        self._handlers[Events.STATE_CHANGE_COMPLETE] = self._on_state_change_complete

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def config(self) -> DottableDict:
        return self._config

    @property
    def partition(self) -> TierPartition:
        return self._partition

    @property
    def registry(self) -> VmRegistry:
        return self._registry

    @property
    def migrating_vms(self) -> Set[int]:
        return self._coordinator.migrating_vms

    def _transit(self, target: ControllerState):
        if LIFECYCLE_TRANSITIONS.get(self._state, None) != target:
            raise InvalidLifecycleError(f"Controller cannot go from {self._state.value} to {target.value}")
        self._state = target

    def init(self, time: int = 0):
        """Split the machines into tiers and create one VM on each running machine."""
        try:
            self._transit(ControllerState.RUNNING)
        except InvalidLifecycleError as e:
            self._logger.warn(f"Init ignored: {e}")
            return

        self._logger.set_tick(time)
        try:
            for info in self._tiers.initialize(time):
                self._placement.provision(info.machine_id, info.cpu, self._default_vm_types[info.cpu])
            self._tiers.check_partition()
        except InvariantViolationError as e:
            self._logger.error(f"Invariant violated during init: {e!r}")

        self._logger.info(f"Controller running with {len(self._registry)} vms.")

    def dispatch(self, event: Events, time: int, *args):
        """Run the handler registered for the event.

        Args:
            event (Events): Type of the event.
            time (int): Event time, as given by the engine.
            args: Payload of the event, a task, VM or machine id.

        Returns:
            The handler result, None if the event was not handled.
        """
        if self._state != ControllerState.RUNNING:
            self._logger.warn(f"Event {event.value} ignored, controller is {self._state.value}.")
            return None

        self._logger.set_tick(time)
        self._logger.debug(f"Handling {event.value} {args}.")
        try:
            result = self._handlers[event](time, *args)
            self._tiers.check_partition()
        except InvariantViolationError as e:
            self._logger.error(f"Invariant violated while handling {event.value}: {e!r}")
            return None
        return result

    def new_task(self, time: int, task_id: int) -> Placement:
        return self.dispatch(Events.NEW_TASK, time, task_id)

    def task_complete(self, time: int, task_id: int):
        return self.dispatch(Events.TASK_COMPLETE, time, task_id)

    def migration_complete(self, time: int, vm_id: int):
        return self.dispatch(Events.MIGRATION_COMPLETE, time, vm_id)

    def periodic_check(self, time: int):
        return self.dispatch(Events.PERIODIC_CHECK, time)

    def memory_warning(self, time: int, machine_id: int):
        return self.dispatch(Events.MEMORY_WARNING, time, machine_id)

    def sla_warning(self, time: int, task_id: int):
        return self.dispatch(Events.SLA_WARNING, time, task_id)

    def state_change_complete(self, time: int, machine_id: int):
        return self.dispatch(Events.STATE_CHANGE_COMPLETE, time, machine_id)

    def _on_new_task(self, time: int, task_id: int) -> Placement:
        return self._placement.place(task_id, time)

    def _on_task_complete(self, time: int, task_id: int) -> bool:
        violated = self._sla_monitor.on_task_complete(task_id, time)
        if self._config.policy.consolidate_on_task_complete:
            self._tiers.consolidate(time)
        return violated

    def _on_migration_complete(self, time: int, vm_id: int) -> bool:
        return self._coordinator.complete(vm_id, time)

    def _on_periodic_check(self, time: int):
        self._tiers.periodic_check(time)

    def _on_memory_warning(self, time: int, machine_id: int) -> bool:
        if machine_id not in self._partition:
            self._logger.warn(f"Memory warning for unknown machine {machine_id}, ignored.")
            return False
        return self._coordinator.relieve_memory(machine_id, time)

    def _on_sla_warning(self, time: int, task_id: int) -> bool:
        return self._sla_monitor.on_warning(task_id, time)

    def _on_state_change_complete(self, time: int, machine_id: int) -> bool:
        return self._tiers.state_change_complete(machine_id, time)

    def shutdown(self, time: int):
        """Shut down every VM that is not migrating, exactly once, then stop."""
        try:
            self._transit(ControllerState.SHUTTING_DOWN)
        except InvalidLifecycleError as e:
            self._logger.warn(f"Shutdown ignored: {e}")
            return

        self._logger.set_tick(time)
        migrating = self._coordinator.migrating_vms
        for vm in self._registry:
            if vm.shut_down:
                continue

            if vm.vm_id in migrating:
                self._logger.info(f"Vm {vm.vm_id} is migrating, not shut down.")
                continue

            # Flagged even if refused, no vm gets a second shutdown command.
            self._registry.mark_shut_down(vm.vm_id)
            result = self._actuator.shutdown_vm(vm.vm_id)
            if not result.ok:
                self._logger.warn(f"Vm {vm.vm_id} refused shutdown: {result.reason}")

        self._logger.info(f"Controller stopped, metrics: {self.get_metrics()}")
        self._transit(ControllerState.STOPPED)

    def report(self) -> dict:
        """SLA compliance per class and cluster energy, as measured by the engine."""
        return {
            "sla_compliance": self._sla_monitor.report(),
            "cluster_energy": self._directory.cluster_energy(),
        }

    def get_metrics(self) -> DocableDict:
        """Get the controller metrics.

        Returns:
            DocableDict: Metrics information.
        """
        outcomes = self._placement.outcomes
        return DocableDict(
            metrics_desc,
            placed_tasks=sum(count for outcome, count in outcomes.items() if outcome != PlacementOutcome.FAILED),
            best_fit_placements=outcomes[PlacementOutcome.BEST_FIT],
            compatible_placements=outcomes[PlacementOutcome.COMPATIBLE],
            expanded_placements=outcomes[PlacementOutcome.EXPANDED],
            emergency_placements=outcomes[PlacementOutcome.EMERGENCY],
            failed_placements=outcomes[PlacementOutcome.FAILED],
            migrations_issued=self._actuator.migrations_issued,
            migrations_completed=self._coordinator.migrations_completed,
            state_changes_issued=self._actuator.state_changes_issued,
            performance_changes_issued=self._actuator.performance_changes_issued,
            sla_violations=self._sla_monitor.violations,
            sla_rescues=self._sla_monitor.rescues,
            vms_created=self._actuator.vms_created,
            vms_shut_down=self._actuator.vms_shut_down,
            tasks_added=self._actuator.tasks_added,
            priority_changes_issued=self._actuator.priority_changes_issued,
            running_machines=self._partition.size(Tier.RUNNING),
            standby_machines=self._partition.size(Tier.STANDBY),
            off_machines=self._partition.size(Tier.OFF),
        )
