# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from typing import Dict

from .actuator import Actuator
from .directory import ResourceDirectory
from .enums import Priority, SlaClass, Status
from .migration import MigrationCoordinator

# Scheduling priority given to a task at arrival, any other class gets the lowest one.
SLA_PRIORITY = {
    SlaClass.SLA0: Priority.HIGH,
    SlaClass.SLA1: Priority.MID,
}


class SlaMonitor:
    """Derives task priorities from SLA classes and reacts to SLA violations.

    Reactions are best effort: a rescue that finds no target is not retried, the next
    periodic check looks at the cluster again anyway.
    """

    def __init__(
        self,
        directory: ResourceDirectory,
        actuator: Actuator,
        coordinator: MigrationCoordinator,
        logger
    ):
        self._directory = directory
        self._actuator = actuator
        self._coordinator = coordinator
        self._logger = logger

        self.violations: int = 0
        self.rescues: int = 0

    @staticmethod
    def priority_of(sla: SlaClass) -> Priority:
        return SLA_PRIORITY.get(sla, Priority.LOW)

    def on_warning(self, task_id: int, now: int) -> bool:
        """Escalate the task to the highest priority, then try to move it to a quieter machine.

        Returns:
            bool: If a rescue migration was started.
        """
        result = self._actuator.set_task_priority(task_id, Priority.HIGH)
        if result.status == Status.NOT_FOUND:
            self._logger.warn(f"SLA warning for unknown task {task_id}, ignored.")
            return False

        if not result.ok:
            self._logger.warn(f"Priority escalation of task {task_id} refused: {result.reason}")
        else:
            self._logger.info(f"Task {task_id} escalated to {Priority.HIGH.name} priority.")

        if self._coordinator.rescue(task_id, now):
            self.rescues += 1
            return True
        return False

    def on_task_complete(self, task_id: int, now: int) -> bool:
        """Check the finished task against its SLA.

        Returns:
            bool: If the task violated its SLA.
        """
        result = self._directory.is_sla_violation(task_id)
        if not result.ok:
            self._logger.warn(f"Completed task {task_id} not found, SLA not checked.")
            return False

        if result.value:
            self.violations += 1
            self._logger.warn(f"Task {task_id} completed in violation of its SLA.")
        return result.value

    def report(self) -> Dict[str, float]:
        """Dict[str, float]: Compliance percentage per SLA class, as measured by the engine."""
        return {sla.name: self._directory.sla_report(sla) for sla in SlaClass}
