#!/usr/bin/env python
#
# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import json
import logging
import os
import re
import shutil
import subprocess  # nosec
import tempfile
from typing import Any, List, Optional

import semver
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import CredentialUnavailableError
from memoization import cached

from ..errors import AuthenticationError
from ..models import SubscriptionInfo
from .environment import environment_from_cloud_name

MIN_CLI_VERSION = "2.11.0"
AZ_COMMAND_TIMEOUT = 60
CLI_NOT_INSTALLED = "Azure CLI not installed"
CLI_NOT_LOGGED_IN = "Please run 'az login' to set up an account"
REDACT_ACCESS_TOKEN = re.compile(r'"accessToken": "(.*?)("|$)')

LOGGER = logging.getLogger("azdeploy.auth")


def find_az() -> Optional[str]:
    return shutil.which("az")


def _safe_working_directory() -> str:
    # the current directory could contain a spoofed 'az' on Windows
    if os.name == "nt":
        return os.environ.get("SYSTEMROOT") or tempfile.gettempdir()
    return "/bin" if os.path.isdir("/bin") else tempfile.gettempdir()


def redact(output: str) -> str:
    return REDACT_ACCESS_TOKEN.sub('"accessToken": "****\\2', output)


def execute_az_command_json(args: List[str]) -> Any:
    """Run `az <args> --output json` and parse its output"""

    az = find_az()
    if not az:
        raise CredentialUnavailableError(message=CLI_NOT_INSTALLED)

    command = [az] + args + ["--output", "json"]
    LOGGER.debug("running: az %s", " ".join(args))
    try:
        # security note: the arguments are fixed by the callers in this module
        process = subprocess.run(  # nosec
            command,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            cwd=_safe_working_directory(),
            timeout=AZ_COMMAND_TIMEOUT,
            check=False,
        )
    except subprocess.TimeoutExpired as err:
        raise ClientAuthenticationError(
            message="Timed out invoking Azure CLI: %s" % err
        )
    except OSError as err:
        raise CredentialUnavailableError(message="%s: %s" % (CLI_NOT_INSTALLED, err))

    output = process.stdout.decode("utf-8", errors="replace").strip()
    if process.returncode != 0:
        if not output:
            raise ClientAuthenticationError(message="Failed to invoke Azure CLI")
        if "'az' is not recognized" in output or "az: not found" in output:
            raise CredentialUnavailableError(message=CLI_NOT_INSTALLED)
        if "az login" in output or "az account set" in output:
            raise CredentialUnavailableError(message=CLI_NOT_LOGGED_IN)
        raise ClientAuthenticationError(message=redact(output))

    try:
        return json.loads(output)
    except json.decoder.JSONDecodeError as err:
        raise AuthenticationError(
            "Cannot parse output of 'az %s': %s" % (" ".join(args), err)
        )


def is_minimum_version(*, version: str, minimum: str) -> bool:
    return bool(
        semver.VersionInfo.parse(version, optional_minor_and_patch=True).compare(
            minimum
        )
        >= 0
    )


@cached
def check_cli_version() -> bool:
    result = execute_az_command_json(["version"])
    if not isinstance(result, dict):
        return False
    version = result.get("azure-cli")
    if not version:
        return False
    try:
        supported = is_minimum_version(version=version, minimum=MIN_CLI_VERSION)
    except (TypeError, ValueError):
        LOGGER.debug("unable to parse Azure CLI version: %s", version)
        return False
    if not supported:
        raise AuthenticationError(
            "Your Azure CLI version %s is too old, "
            "please run 'az upgrade' to upgrade to %s or newer"
            % (version, MIN_CLI_VERSION)
        )
    return True


def list_subscriptions() -> List[SubscriptionInfo]:
    result = execute_az_command_json(["account", "list"])
    subscriptions = []
    for entry in result or []:
        if entry.get("state") != "Enabled":
            continue
        if not entry.get("id") or not entry.get("name"):
            continue
        user = entry.get("user") or {}
        subscriptions.append(
            SubscriptionInfo(
                id=entry["id"],
                name=entry["name"],
                tenant_id=entry.get("tenantId"),
                email=user.get("name"),
                selected=bool(entry.get("isDefault")),
                environment=environment_from_cloud_name(entry.get("cloudName")).name,
            )
        )
    return subscriptions


def get_default_subscription() -> Optional[SubscriptionInfo]:
    for subscription in list_subscriptions():
        if subscription.selected:
            return subscription
    return None
