# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from typing import Dict, List, Optional

import numpy as np

from eeco.utils import DottableDict

from .actuator import Actuator
from .common import MachineInfo, PendingOperation
from .directory import ResourceDirectory
from .enums import TIER_POWER_STATE, CpuPerformance, CpuType, Tier
from .migration import MigrationCoordinator
from .partition import TierPartition
from .pending import PendingOperationTable


class TierManager:
    """Moves machines between the running, standby and off tiers and sets their core performance.

    Every tier move issues the matching power state command, and the machine is considered busy
    until the engine confirms the state change. If the engine refuses the command the machine
    goes back to the tier it came from, so the partition always mirrors the commands accepted.

    Args:
        directory (ResourceDirectory): Query layer.
        actuator (Actuator): Command layer.
        partition (TierPartition): The tiers, shared with the placement policy and the coordinator.
        coordinator (MigrationCoordinator): Used for rebalancing and consolidation.
        config (DottableDict): Controller configuration.
        logger: Logger used for decisions and diagnostics.
    """

    def __init__(
        self,
        directory: ResourceDirectory,
        actuator: Actuator,
        partition: TierPartition,
        coordinator: MigrationCoordinator,
        config: DottableDict,
        logger
    ):
        self._directory = directory
        self._actuator = actuator
        self._partition = partition
        self._coordinator = coordinator
        self._logger = logger

        self._max_running: int = config.tiers.max_running
        self._min_running: int = config.tiers.min_running
        self._standby_size: int = config.tiers.standby_size
        self._refill_threshold: int = config.tiers.standby_refill_threshold
        self._underload: float = config.thresholds.underload
        # Ascending lower bounds, digitize returns how many bands a utilization exceeds.
        self._bands = np.array(sorted(config.performance_bands), dtype=float)
        self._rebalance_on_check: bool = config.policy.rebalance_on_periodic_check
        self._consolidate_on_check: bool = config.policy.consolidate_on_periodic_check

        self._operations = PendingOperationTable(exclusive=False)
        self._machine_ids: List[int] = []

    @property
    def pending_state_changes(self) -> List[int]:
        """List[int]: Machines waiting for a state change confirmation."""
        return [operation.key for operation in self._operations.pending()]

    def has_pending_change(self, machine_id: int) -> bool:
        return self._operations.is_pending(machine_id)

    def check_partition(self):
        """Raise ``TierPartitionError`` if the tiers do not partition the known machines."""
        self._partition.validate(self._machine_ids)

    def initialize(self, now: int) -> List[MachineInfo]:
        """Split the machines into tiers, in id order.

        The first ``max_running`` readable machines stay running, the next ``standby_size`` go
        to standby, the rest are switched off. A machine whose info cannot be read is put in the
        off tier without any command.

        Returns:
            List[MachineInfo]: The machines of the running tier.
        """
        self._machine_ids = list(range(self._directory.machine_total()))
        running = []
        standby = 0
        for machine_id in self._machine_ids:
            result = self._directory.machine(machine_id)
            if not result.ok:
                self._logger.warn(f"Machine {machine_id} not readable at init, put in off tier.")
                self._partition.assign(machine_id, Tier.OFF)
                continue

            info = result.value
            if len(running) < self._max_running:
                tier = Tier.RUNNING
                running.append(info)
            elif standby < self._standby_size:
                tier = Tier.STANDBY
                standby += 1
            else:
                tier = Tier.OFF

            self._partition.assign(machine_id, tier, cpu=info.cpu)
            if info.state != TIER_POWER_STATE[tier]:
                self._request_state(machine_id, tier, now)

        self._logger.info(
            f"Tiers initialized: {len(running)} running, {standby} standby, "
            f"{self._partition.size(Tier.OFF)} off."
        )
        return running

    def _request_state(self, machine_id: int, tier: Tier, now: int) -> bool:
        state = TIER_POWER_STATE[tier]
        self._operations.begin(PendingOperation(machine_id, issued_at=now, power_state=state))
        result = self._actuator.set_machine_state(machine_id, state)
        if not result.ok:
            self._operations.discard(machine_id)
            self._logger.warn(f"Machine {machine_id} refused state {state.value}: {result.reason}")
            return False
        return True

    def _change_tier(self, machine_id: int, tier: Tier, now: int) -> bool:
        previous = self._partition.move(machine_id, tier)
        if not self._request_state(machine_id, tier, now):
            self._partition.move(machine_id, previous)
            return False

        self._logger.info(f"Machine {machine_id} moved from {previous.value} to {tier.value}.")
        return True

    def promote(self, machine_id: int, now: int) -> bool:
        return self._change_tier(machine_id, Tier.RUNNING, now)

    def demote(self, machine_id: int, tier: Tier, now: int) -> bool:
        return self._change_tier(machine_id, tier, now)

    def expand(self, cpu: CpuType, now: int) -> Optional[int]:
        """Bring one machine of the architecture to the running tier, standby machines first.

        Returns:
            int: The promoted machine, None if no machine of the architecture could be promoted.
        """
        for tier in (Tier.STANDBY, Tier.OFF):
            for machine_id in self._partition.members(tier, cpu=cpu):
                if self.promote(machine_id, now):
                    self.refill_standby(cpu, now)
                    return machine_id
        return None

    def refill_standby(self, cpu: CpuType, now: int) -> bool:
        """Move one off machine to standby if the standby pool fell below the refill threshold.

        The threshold never exceeds ``standby_size``. Machines of ``cpu`` are preferred, since the
        pool was drained by that architecture.
        """
        if self._partition.size(Tier.STANDBY) >= min(self._refill_threshold, self._standby_size):
            return False

        candidates = self._partition.members(Tier.OFF, cpu=cpu)
        candidates += [machine_id for machine_id in self._partition.members(Tier.OFF) if machine_id not in candidates]
        for machine_id in candidates:
            if self._change_tier(machine_id, Tier.STANDBY, now):
                return True
        return False

    def state_change_complete(self, machine_id: int, now: int) -> bool:
        operation = self._operations.confirm(machine_id)
        if operation is None:
            self._logger.warn(f"State change completion for machine {machine_id} which has none pending, ignored.")
            return False

        self._logger.debug(
            f"Machine {machine_id} reached {operation.power_state.value} after {now - operation.issued_at} ticks."
        )
        return True

    def _running_snapshot(self) -> Dict[int, MachineInfo]:
        return self._directory.machines(
            machine_id for machine_id in self._partition.members(Tier.RUNNING)
            if not self.has_pending_change(machine_id)
        )

    def consolidate(self, now: int) -> bool:
        return self._coordinator.consolidate(self._running_snapshot(), now)

    def periodic_check(self, now: int):
        """Rebalance, consolidate, demote idle machines and set the core performance levels.

        Machines with a pending state change are left alone, and a performance command is only
        sent when the queried level differs, so running the check twice on unchanged inputs
        issues nothing the second time.
        """
        snapshot = self._running_snapshot()
        if len(snapshot) == 0:
            self._logger.debug("No running machine to check.")
            return

        if self._rebalance_on_check:
            self._coordinator.rebalance(snapshot, now)

        if self._consolidate_on_check:
            self._coordinator.consolidate(snapshot, now)

        machine_ids = np.array(list(snapshot.keys()))
        active = np.array([info.active_tasks for info in snapshot.values()], dtype=float)
        cores = np.array([info.num_cpus for info in snapshot.values()], dtype=float)
        utilization = np.divide(active, cores, out=np.zeros_like(active), where=cores > 0)
        levels = len(self._bands) - np.digitize(utilization, self._bands, right=True)

        demoted = self._demote_idle(snapshot, machine_ids[(active == 0) & (utilization < self._underload)], now)

        for machine_id, level in zip(machine_ids.tolist(), levels.tolist()):
            if machine_id in demoted:
                continue

            info = snapshot[machine_id]
            level = CpuPerformance(level)
            if info.p_state == level:
                continue

            result = self._actuator.set_machine_performance(machine_id, info.num_cpus, level)
            if result.ok:
                self._logger.debug(f"Machine {machine_id} cores set to P{level.value}.")
            else:
                self._logger.warn(f"Machine {machine_id} refused performance P{level.value}: {result.reason}")

    def _demote_idle(self, snapshot: Dict[int, MachineInfo], idle: np.ndarray, now: int) -> List[int]:
        busy = self._coordinator.busy_machines()
        demoted = []
        # Latest machines first, init keeps the lowest ids running.
        for machine_id in sorted(idle.tolist(), reverse=True):
            if self._partition.size(Tier.RUNNING) <= self._min_running:
                break

            if machine_id in busy:
                continue

            tier = Tier.STANDBY if self._partition.size(Tier.STANDBY) < self._standby_size else Tier.OFF
            if self.demote(machine_id, tier, now):
                demoted.append(machine_id)
        return demoted
