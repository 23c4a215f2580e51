#!/usr/bin/env python
#
# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import unittest
from typing import Dict, List, Type
from unittest.mock import MagicMock

from azdeploy.auth.manager import AzureAuthManager
from azdeploy.auth.retriever import AzureCredentialWrapper, CredentialRetriever
from azdeploy.enums import AuthType, CloudName
from azdeploy.errors import (
    CredentialUnavailable,
    LoginFailureError,
    UnsupportedAuthType,
)
from azdeploy.models import AuthConfiguration

CALLS: List[str] = []


class FailingRetriever(CredentialRetriever):
    def _retrieve(self) -> AzureCredentialWrapper:
        CALLS.append(self.name)
        raise CredentialUnavailable("%s is not available" % self.name)


class WorkingRetriever(CredentialRetriever):
    def _retrieve(self) -> AzureCredentialWrapper:
        CALLS.append(self.name)
        return AzureCredentialWrapper(
            MagicMock(),
            AuthType(self.name),
            self.environment,
            tenant_id=self.configuration.tenant,
        )


def registry(
    working: List[AuthType], skip: List[AuthType] = None
) -> Dict[AuthType, Type[CredentialRetriever]]:
    result: Dict[AuthType, Type[CredentialRetriever]] = {}
    for auth_type in AuthType.priority():
        if skip and auth_type in skip:
            continue
        base = WorkingRetriever if auth_type in working else FailingRetriever
        result[auth_type] = type(
            "Fake_%s" % auth_type.value, (base,), {"name": auth_type.value}
        )
    return result


class TestAzureAuthManager(unittest.TestCase):
    def setUp(self) -> None:
        CALLS.clear()

    def test_auto_tries_every_source_in_order(self) -> None:
        manager = AzureAuthManager(registry([]))
        with self.assertRaises(LoginFailureError) as ctx:
            manager.get_credential(AuthConfiguration())

        self.assertEqual(CALLS, [x.value for x in AuthType.priority()])
        self.assertTrue(
            ctx.exception.message.startswith(
                "Cannot get credentials from authType 'auto' due to error: "
            )
        )
        self.assertIn("azure_cli: azure_cli is not available", ctx.exception.message)
        self.assertEqual(len(ctx.exception.failures), len(AuthType.priority()))

    def test_auto_stops_at_first_success(self) -> None:
        manager = AzureAuthManager(registry([AuthType.azure_cli, AuthType.oauth2]))
        wrapper = manager.get_credential(None)

        self.assertEqual(wrapper.auth_type, AuthType.azure_cli)
        self.assertEqual(CALLS, ["service_principal", "managed_identity", "azure_cli"])

    def test_specific_type_uses_only_that_source(self) -> None:
        manager = AzureAuthManager(registry([AuthType.device_code]))
        config = AuthConfiguration(type=AuthType.device_code, tenant="contoso")
        wrapper = manager.get_credential(config)

        self.assertEqual(CALLS, ["device_code"])
        self.assertEqual(wrapper.auth_type, AuthType.device_code)
        self.assertEqual(wrapper.tenant_id, "contoso")

    def test_specific_type_failure(self) -> None:
        manager = AzureAuthManager(registry([]))
        config = AuthConfiguration.parse_obj({"type": "vscode"})
        with self.assertRaises(LoginFailureError) as ctx:
            manager.get_credential(config)

        self.assertEqual(CALLS, ["vscode"])
        self.assertEqual(
            ctx.exception.message,
            "Cannot get credentials from authType 'vscode' due to error: "
            "vscode: vscode is not available",
        )

    def test_unsupported_type(self) -> None:
        manager = AzureAuthManager(registry([], skip=[AuthType.oauth2]))
        with self.assertRaises(UnsupportedAuthType) as ctx:
            manager.get_credential(AuthConfiguration(type=AuthType.oauth2))
        self.assertEqual(str(ctx.exception), "authType 'oauth2' not supported.")
        self.assertEqual(CALLS, [])

    def test_environment_is_passed_to_sources(self) -> None:
        manager = AzureAuthManager(registry([AuthType.service_principal]))
        wrapper = manager.get_credential(
            AuthConfiguration(environment=CloudName.azure_china)
        )
        self.assertEqual(wrapper.environment.name, CloudName.azure_china)
        self.assertEqual(
            wrapper.environment.management_scope,
            "https://management.chinacloudapi.cn/.default",
        )


if __name__ == "__main__":
    unittest.main()
