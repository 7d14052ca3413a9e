# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from .base_exception import EecoException
from .controller_exception import (
    InvalidConfigError, InvalidLifecycleError, InvariantViolationError, MigrationConflictError, TierPartitionError
)
from .engine_exception import CommandRejectedError, EngineError, ResourceNotFoundError
from .error_code import ERROR_CODE

__all__ = [
    "ERROR_CODE", "EecoException",
    "EngineError", "ResourceNotFoundError", "CommandRejectedError",
    "InvariantViolationError", "InvalidLifecycleError", "TierPartitionError", "MigrationConflictError",
    "InvalidConfigError",
]
