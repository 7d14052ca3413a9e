# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from enum import Enum, IntEnum


class Events(Enum):
    """Events the cluster engine delivers to the controller."""
    NEW_TASK = "new_task"
    TASK_COMPLETE = "task_complete"
    MIGRATION_COMPLETE = "migration_complete"
    PERIODIC_CHECK = "periodic_check"
    MEMORY_WARNING = "memory_warning"
    SLA_WARNING = "sla_warning"
    STATE_CHANGE_COMPLETE = "state_change_complete"


class CpuType(Enum):
    ARM = "ARM"
    POWER = "POWER"
    RISCV = "RISCV"
    X86 = "X86"


class VmType(Enum):
    LINUX = "LINUX"
    LINUX_RT = "LINUX_RT"
    WIN = "WIN"
    AIX = "AIX"


class SlaClass(IntEnum):
    """Service level classes, SLA0 is the strictest."""
    SLA0 = 0
    SLA1 = 1
    SLA2 = 2
    SLA3 = 3


class Priority(IntEnum):
    """Task scheduling priority, a larger value is served first."""
    LOW = 0
    MID = 1
    HIGH = 2


class PowerState(Enum):
    """Machine power states, S0 is the only state able to run tasks."""
    ACTIVE = "S0"
    STANDBY = "S1"
    OFF = "S5"


class CpuPerformance(IntEnum):
    """Per-core performance level, P0 is the fastest and the most power hungry."""
    P0 = 0
    P1 = 1
    P2 = 2
    P3 = 3


class Tier(Enum):
    """Activity tiers the machines are partitioned into."""
    RUNNING = "running"
    STANDBY = "standby"
    OFF = "off"


# Power state a machine is driven to when it joins a tier.
TIER_POWER_STATE = {
    Tier.RUNNING: PowerState.ACTIVE,
    Tier.STANDBY: PowerState.STANDBY,
    Tier.OFF: PowerState.OFF,
}


class OperationStatus(Enum):
    """Status of an asynchronous command, only a completion callback confirms it."""
    IDLE = "idle"
    PENDING = "pending"
    CONFIRMED = "confirmed"


class MigrationReason(Enum):
    CONSOLIDATION = "consolidation"
    REBALANCE = "rebalance"
    MEMORY_PRESSURE = "memory_pressure"
    SLA_RESCUE = "sla_rescue"


class PlacementOutcome(Enum):
    """Which step of the placement fallback chain hosted the task."""
    BEST_FIT = "best_fit"
    COMPATIBLE = "compatible"
    EXPANDED = "expanded"
    EMERGENCY = "emergency"
    FAILED = "failed"


class ControllerState(Enum):
    UNINITIALIZED = "uninitialized"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class Status(Enum):
    """Result of a query or a command sent to the cluster engine."""
    OK = "ok"
    # The id is unknown to the engine.
    NOT_FOUND = "not_found"
    # The engine refused the command.
    REJECTED = "rejected"
