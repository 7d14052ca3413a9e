# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from typing import Dict, Iterable, List

from eeco.utils.exception import TierPartitionError

from .enums import CpuType, Tier


class TierPartition:
    """Partition of the machines into the running, standby and off tiers.

    A machine joins the partition once, through ``assign``, and afterwards only changes tier
    through ``move``. Each tier keeps the order machines joined it, so scans are deterministic.
    The CPU architecture of each machine is kept alongside, it never changes and indexes the
    per-architecture pools.
    """

    def __init__(self):
        self._tiers: Dict[Tier, List[int]] = {tier: [] for tier in Tier}
        self._membership: Dict[int, Tier] = {}
        self._cpu: Dict[int, CpuType] = {}

    def __len__(self) -> int:
        return len(self._membership)

    def __contains__(self, machine_id: int) -> bool:
        return machine_id in self._membership

    def assign(self, machine_id: int, tier: Tier, cpu: CpuType = None):
        if machine_id in self._membership:
            raise TierPartitionError(f"Machine {machine_id} is already in tier {self._membership[machine_id].value}.")

        self._membership[machine_id] = tier
        self._tiers[tier].append(machine_id)
        self._cpu[machine_id] = cpu

    def move(self, machine_id: int, tier: Tier) -> Tier:
        """Move a machine to another tier.

        Returns:
            Tier: The tier the machine left.
        """
        if machine_id not in self._membership:
            raise TierPartitionError(f"Machine {machine_id} is not in any tier.")

        previous = self._membership[machine_id]
        if previous != tier:
            self._tiers[previous].remove(machine_id)
            self._tiers[tier].append(machine_id)
            self._membership[machine_id] = tier
        return previous

    def tier_of(self, machine_id: int) -> Tier:
        return self._membership.get(machine_id, None)

    def cpu_of(self, machine_id: int) -> CpuType:
        return self._cpu.get(machine_id, None)

    def members(self, tier: Tier, cpu: CpuType = None) -> List[int]:
        if cpu is None:
            return list(self._tiers[tier])
        return [machine_id for machine_id in self._tiers[tier] if self._cpu[machine_id] == cpu]

    def size(self, tier: Tier) -> int:
        return len(self._tiers[tier])

    def validate(self, machine_ids: Iterable[int]):
        """Check the tiers are pairwise disjoint and cover exactly the given machines.

        Raises:
            TierPartitionError: If the partition is broken.
        """
        expected = set(machine_ids)
        seen = set()
        for tier, members in self._tiers.items():
            for machine_id in members:
                if machine_id in seen:
                    raise TierPartitionError(f"Machine {machine_id} is in more than one tier.")
                if self._membership.get(machine_id, None) != tier:
                    raise TierPartitionError(f"Machine {machine_id} membership does not match tier {tier.value}.")
                seen.add(machine_id)

        if seen != expected:
            raise TierPartitionError(
                f"Tiers cover {len(seen)} machines, expected {len(expected)}: "
                f"missing {sorted(expected - seen)}, unknown {sorted(seen - expected)}."
            )
