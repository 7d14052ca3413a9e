# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


from .common import MachineInfo, Placement, Result, TaskRequirement, VmInfo
from .controller import Controller
from .engine import AbsClusterEngine
from .enums import (
    ControllerState, CpuPerformance, CpuType, Events, PlacementOutcome, PowerState, Priority, SlaClass, Status, Tier,
    VmType
)

__all__ = [
    "Controller", "AbsClusterEngine",
    "TaskRequirement", "MachineInfo", "VmInfo", "Result", "Placement",
    "ControllerState", "CpuPerformance", "CpuType", "Events", "PlacementOutcome", "PowerState", "Priority",
    "SlaClass", "Status", "Tier", "VmType",
]
