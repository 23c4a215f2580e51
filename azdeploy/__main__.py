#!/usr/bin/env python
#
# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""
Command line interface for deploying to Azure
"""

import sys

from azdeploy.__version__ import __version__
from azdeploy.api import AzDeploy, Endpoint
from azdeploy.cli import execute_api


def main() -> int:
    return execute_api(AzDeploy(), [Endpoint], __version__)


if __name__ == "__main__":
    sys.exit(main())
