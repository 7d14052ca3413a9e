# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


from copy import deepcopy


class DottableDict(dict):
    """A wrapper to dictionary to make possible to key as property."""

    def __init__(self, *args, **kwargs):
        dict.__init__(self, *args, **kwargs)
        self.__dict__ = self


def convert_dottable(natural_dict: dict) -> DottableDict:
    """Convert a dictionary to DottableDict.

    Args:
        natural_dict (dict): Dictionary to convert to DottableDict.

    Returns:
        DottableDict: Dottable object.
    """
    dottable_dict = DottableDict(natural_dict)
    for k, v in natural_dict.items():
        if type(v) is dict:
            v = convert_dottable(v)
            dottable_dict[k] = v
    return dottable_dict


def merge_config(base: dict, overrides: dict, path: str = "") -> dict:
    """Recursively merge ``overrides`` into a copy of ``base``.

    Args:
        base (dict): The default configuration.
        overrides (dict): Values to replace, must only contain keys existing in ``base``.
        path (str): Dotted path of ``base``, used in the error message.

    Returns:
        dict: The merged configuration.

    Raises:
        KeyError: If ``overrides`` contains a key unknown to ``base``.
    """
    merged = deepcopy(base)
    for key, value in overrides.items():
        if key not in merged:
            raise KeyError(f"{path}{key}")

        if isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_config(merged[key], value, f"{path}{key}.")
        else:
            merged[key] = value
    return merged
