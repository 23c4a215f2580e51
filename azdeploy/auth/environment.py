#!/usr/bin/env python
#
# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import os
from typing import Dict, NamedTuple, Optional
from urllib.parse import quote

from ..enums import CloudName

# well-known public client id shared with the Azure CLI
PUBLIC_CLIENT_ID = "04b07795-8ddb-461a-bbee-02f9e1bf7b46"
AZURE_SECRET_FILE = "azure-secret.json"
AZURE_HOME_ENV = "AZURE_HOME"
AZURE_FOLDER = ".azure"


class AzureEnvironment(NamedTuple):
    name: CloudName
    cli_name: str
    active_directory_endpoint: str
    management_endpoint: str

    @property
    def authority_host(self) -> str:
        return self.active_directory_endpoint.rstrip("/")

    @property
    def management_scope(self) -> str:
        return self.management_endpoint.rstrip("/") + "/.default"


ENVIRONMENTS: Dict[CloudName, AzureEnvironment] = {
    CloudName.azure: AzureEnvironment(
        CloudName.azure,
        "AzureCloud",
        "https://login.microsoftonline.com/",
        "https://management.azure.com/",
    ),
    CloudName.azure_china: AzureEnvironment(
        CloudName.azure_china,
        "AzureChinaCloud",
        "https://login.chinacloudapi.cn/",
        "https://management.chinacloudapi.cn/",
    ),
    CloudName.azure_germany: AzureEnvironment(
        CloudName.azure_germany,
        "AzureGermanCloud",
        "https://login.microsoftonline.de/",
        "https://management.microsoftazure.de/",
    ),
    CloudName.azure_us_government: AzureEnvironment(
        CloudName.azure_us_government,
        "AzureUSGovernment",
        "https://login.microsoftonline.us/",
        "https://management.usgovcloudapi.net/",
    ),
}


def get_azure_environment(name: Optional[str]) -> AzureEnvironment:
    return ENVIRONMENTS[CloudName.parse(name)]


def environment_from_cloud_name(cloud_name: Optional[str]) -> AzureEnvironment:
    """Map an Azure CLI cloud name (`az cloud list`) to its environment"""
    if cloud_name:
        for environment in ENVIRONMENTS.values():
            if environment.cli_name.lower() == cloud_name.strip().lower():
                return environment
    return ENVIRONMENTS[CloudName.azure]


def base_url(environment: AzureEnvironment) -> str:
    return environment.active_directory_endpoint + "common"


def authorization_url(environment: AzureEnvironment, redirect_url: str) -> str:
    if not redirect_url or not redirect_url.strip():
        raise ValueError("redirect_url is required")
    return (
        "%s/oauth2/authorize?client_id=%s&response_type=code"
        "&redirect_uri=%s&prompt=select_account&resource=%s"
        % (
            base_url(environment),
            PUBLIC_CLIENT_ID,
            quote(redirect_url, safe=""),
            quote(environment.management_endpoint, safe=""),
        )
    )


def get_azure_secret_file() -> str:
    azure_home = os.environ.get(AZURE_HOME_ENV)
    if azure_home:
        return os.path.join(os.path.expanduser(azure_home), AZURE_SECRET_FILE)
    return os.path.join(os.path.expanduser("~"), AZURE_FOLDER, AZURE_SECRET_FILE)


def exists_azure_secret_file() -> bool:
    path = get_azure_secret_file()
    return os.path.isfile(path) and os.path.getsize(path) > 0


def delete_azure_secret_file() -> bool:
    path = get_azure_secret_file()
    if not os.path.isfile(path):
        return False
    os.unlink(path)
    return True
