# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


from .base_exception import EecoException
from .error_code import ERROR_CODE


class EngineError(EecoException):
    """Base class of the errors a cluster engine may raise to the controller."""


class ResourceNotFoundError(EngineError):
    """Raised by a cluster engine when a machine, VM or task id is unknown.

    Args:
        kind (str): Kind of the resource, e.g. ``"machine"``, ``"vm"`` or ``"task"``.
        resource_id (int): The id that could not be resolved.
    """

    def __init__(self, kind: str, resource_id: int):
        self.kind = kind
        self.resource_id = resource_id
        super().__init__(2001, f"{ERROR_CODE[2001]}: {kind} {resource_id}")


class CommandRejectedError(EngineError):
    """Raised by a cluster engine when it refuses a command, e.g. no memory left on the host."""

    def __init__(self, msg: str = None):
        super().__init__(2002, f"{ERROR_CODE[2002]}: {msg}" if msg else ERROR_CODE[2002])
