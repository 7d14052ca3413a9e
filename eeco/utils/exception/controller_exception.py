# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


from .base_exception import EecoException
from .error_code import ERROR_CODE


class InvariantViolationError(EecoException):
    """Base class for controller states that should never be reached.

    The controller logs these at error level and keeps serving events.
    """


class InvalidLifecycleError(EecoException):
    """Exception when an entry point is called in a lifecycle state that does not accept it."""

    def __init__(self, msg: str = None):
        super().__init__(2101, msg or ERROR_CODE[2101])


class TierPartitionError(InvariantViolationError):
    """Exception when a machine would be in no tier or in more than one tier."""

    def __init__(self, msg: str = None):
        super().__init__(2102, msg or ERROR_CODE[2102])


class MigrationConflictError(InvariantViolationError):
    """Exception when a migration is started for a VM that is already migrating."""

    def __init__(self, vm_id: int):
        self.vm_id = vm_id
        super().__init__(2103, f"{ERROR_CODE[2103]}: vm {vm_id}")


class InvalidConfigError(EecoException):
    """Exception when the configuration overrides contain unknown keys or bad values."""

    def __init__(self, msg: str = None):
        super().__init__(2104, msg or ERROR_CODE[2104])
