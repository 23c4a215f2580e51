#!/usr/bin/env python
#
# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

from string import ascii_letters, digits


def check_app_name(value: str) -> str:
    # letters, digits and dashes, not starting or ending with a dash
    accepted = ascii_letters + digits + "-"
    if not value or value.startswith("-") or value.endswith("-"):
        raise ValueError("invalid value: %s" % value)
    if not all(x in accepted for x in value):
        raise ValueError("invalid value: %s" % value)
    return value
