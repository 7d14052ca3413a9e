# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from .logger import DummyLogger, LogFormat, Logger
from .utils import DottableDict, convert_dottable, merge_config

__all__ = [
    "Logger",
    "DummyLogger",
    "LogFormat",
    "convert_dottable",
    "DottableDict",
    "merge_config",
]
