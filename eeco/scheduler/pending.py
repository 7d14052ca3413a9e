# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from typing import Dict, List, Optional

from eeco.utils.exception import MigrationConflictError

from .common import PendingOperation
from .enums import OperationStatus


class PendingOperationTable:
    """Asynchronous commands waiting for their completion callback, keyed by VM or machine id.

    An entry goes IDLE (absent) -> PENDING when the command is issued and PENDING -> CONFIRMED
    only when the matching completion callback arrives.

    Args:
        exclusive (bool): If True, starting an operation on a key that is already pending
            raises ``MigrationConflictError``. If False, the new operation supersedes the old one
            and the entry stays pending until every issued command is confirmed.
    """

    def __init__(self, exclusive: bool):
        self._exclusive = exclusive
        self._operations: Dict[int, PendingOperation] = {}
        # Commands issued but not confirmed yet, per key.
        self._outstanding: Dict[int, int] = {}
        # Operation replaced by a superseding one, restored if the new command is discarded.
        self._superseded: Dict[int, PendingOperation] = {}

    def __len__(self) -> int:
        return len(self._outstanding)

    def __contains__(self, key: int) -> bool:
        return self.is_pending(key)

    def status(self, key: int) -> OperationStatus:
        operation = self._operations.get(key, None)
        return operation.status if operation is not None else OperationStatus.IDLE

    def is_pending(self, key: int) -> bool:
        return key in self._outstanding

    def get(self, key: int) -> Optional[PendingOperation]:
        return self._operations.get(key, None)

    def pending(self) -> List[PendingOperation]:
        return [self._operations[key] for key in self._outstanding]

    def begin(self, operation: PendingOperation) -> PendingOperation:
        key = operation.key
        if self.is_pending(key):
            if self._exclusive:
                raise MigrationConflictError(key)
            self._outstanding[key] += 1
            self._superseded[key] = self._operations[key]
        else:
            self._outstanding[key] = 1

        self._operations[key] = operation
        return operation

    def discard(self, key: int):
        """Forget an operation whose command was not accepted by the engine."""
        if not self.is_pending(key):
            return

        self._outstanding[key] -= 1
        if self._outstanding[key] == 0:
            self._outstanding.pop(key)
            self._operations.pop(key)
        else:
            self._operations[key] = self._superseded.pop(key, self._operations[key])

    def confirm(self, key: int) -> Optional[PendingOperation]:
        """Mark one outstanding command of the key as completed.

        Returns:
            PendingOperation: The operation, or None if nothing was pending for the key.
        """
        if not self.is_pending(key):
            return None

        operation = self._operations[key]
        self._outstanding[key] -= 1
        if self._outstanding[key] == 0:
            self._outstanding.pop(key)
            operation.status = OperationStatus.CONFIRMED
            self._superseded.pop(key, None)
        return operation
