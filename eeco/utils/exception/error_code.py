# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


ERROR_CODE = {
    # Error code table for the eeco controller.
    1000: "EECO Internal Error",

    # 2000-2099: errors raised by a cluster engine implementation.
    2001: "Resource not found",
    2002: "Command rejected by cluster engine",

    # 2100-2199: controller errors.
    2101: "Invalid controller lifecycle transition",
    2102: "Tier partition invariant violated",
    2103: "Migration already in flight",
    2104: "Invalid controller configuration",
}
