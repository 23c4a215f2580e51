#!/usr/bin/env python
#
# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import os
import tempfile
import unittest
from unittest.mock import MagicMock, patch

from azdeploy.api import AzDeploy
from azdeploy.enums import AuthType, CloudName, DeployType
from azdeploy.errors import DeployError
from azdeploy.models import (
    CredentialInfo,
    DeploymentSlotSetting,
    FunctionAppConfig,
    SpringCloudAppConfig,
    WebAppConfig,
)


class AzDeployTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.tmpdir = tempfile.TemporaryDirectory()
        self.config_path = os.path.join(self.tmpdir.name, "config.json")
        self.auth_manager = MagicMock()
        self.wrapper = self.auth_manager.get_credential.return_value
        self.wrapper.resolve_subscription.return_value = "sub-1"
        self.api = AzDeploy(self.config_path, self.auth_manager)

    def tearDown(self) -> None:
        self.tmpdir.cleanup()


class TestAccount(AzDeployTestCase):
    def test_login(self) -> None:
        info = CredentialInfo(
            auth_type=AuthType.azure_cli, environment=CloudName.azure, email="a@b.c"
        )
        self.wrapper.info.return_value = info

        self.assertEqual(self.api.login(), info)
        self.auth_manager.get_credential.assert_called_once_with(
            self.api._store.config.auth
        )

    def test_credential_is_reused(self) -> None:
        self.api._credential()
        self.api._credential()
        self.assertEqual(self.auth_manager.get_credential.call_count, 1)

        self.api.__setup__(auth_type=AuthType.device_code)
        self.assertEqual(self.api._store.config.auth.type, AuthType.device_code)
        self.api._credential()
        self.assertEqual(self.auth_manager.get_credential.call_count, 2)

    def test_logout(self) -> None:
        self.auth_manager.logout.return_value = False
        self.api.logout()
        self.auth_manager.logout.assert_called_once_with()

    def test_config(self) -> None:
        result = self.api.config(
            auth_type=AuthType.service_principal,
            client="client",
            tenant="tenant",
            key="secret",
            subscription_id="sub-2",
        )
        self.assertEqual(result.auth.key, "***")
        self.assertEqual(result.subscription_id, "sub-2")

        reloaded = AzDeploy(self.config_path, self.auth_manager)
        self.assertEqual(reloaded._store.config.auth.key, "secret")
        self.assertEqual(reloaded._store.config.auth.type, AuthType.service_principal)

        result = reloaded.config(reset=True, environment=CloudName.azure_china)
        self.assertIsNone(result.auth.key)
        self.assertIsNone(result.subscription_id)
        self.assertEqual(result.auth.environment, CloudName.azure_china)

    def test_subscription_prefers_argument(self) -> None:
        self.api.__setup__(subscription_id="configured")
        self.api._subscription(self.wrapper, None)
        self.wrapper.resolve_subscription.assert_called_with("configured")
        self.api._subscription(self.wrapper, "explicit")
        self.wrapper.resolve_subscription.assert_called_with("explicit")


@patch("azdeploy.api.get_artifact_handler")
@patch("azdeploy.api.AppServiceClient")
class TestWebApp(AzDeployTestCase):
    def test_deploy(self, client: MagicMock, get_handler: MagicMock) -> None:
        app = client.return_value.create_or_update_web_app.return_value
        app.name = "myapp"
        app.default_host_name = "myapp.azurewebsites.net"
        config = WebAppConfig(
            app_name="myapp", resource_group="rg", deploy_type=DeployType.ftp
        )

        result = self.api.webapp.deploy(config)

        client.assert_called_once_with(self.wrapper, "sub-1")
        self.assertEqual(result.url, "https://myapp.azurewebsites.net")
        (deploy_type, staging), _ = get_handler.call_args
        self.assertEqual(deploy_type, DeployType.ftp)
        self.assertTrue(
            staging.endswith(os.path.join("target", "azure-webapp", "myapp"))
        )
        target = get_handler.return_value.publish.call_args[0][0]
        self.assertEqual(target.get_name(), "myapp")

    def test_deploy_slot(self, client: MagicMock, get_handler: MagicMock) -> None:
        slot = client.return_value.get_or_create_slot.return_value
        slot.default_host_name = "myapp-staging.azurewebsites.net"
        config = WebAppConfig(
            app_name="myapp",
            resource_group="rg",
            deployment_slot=DeploymentSlotSetting(name="staging"),
        )

        result = self.api.webapp.deploy_slot(config)

        self.assertEqual(result.deployment, "staging")
        self.assertEqual(result.url, "https://myapp-staging.azurewebsites.net")
        target = get_handler.return_value.publish.call_args[0][0]
        self.assertEqual(target.get_name(), "staging")

    def test_deploy_slot_requires_slot(
        self, client: MagicMock, get_handler: MagicMock
    ) -> None:
        config = WebAppConfig(app_name="myapp", resource_group="rg")
        with self.assertRaises(DeployError):
            self.api.webapp.deploy_slot(config)
        client.assert_not_called()
        self.auth_manager.get_credential.assert_not_called()

    def test_deploy_slot_missing_app(
        self, client: MagicMock, get_handler: MagicMock
    ) -> None:
        client.return_value.get_web_app.return_value = None
        config = WebAppConfig(
            app_name="myapp",
            resource_group="rg",
            deployment_slot=DeploymentSlotSetting(name="staging"),
        )
        with self.assertRaises(DeployError):
            self.api.webapp.deploy_slot(config)
        get_handler.assert_not_called()


class TestOtherTargets(AzDeployTestCase):
    @patch("azdeploy.api.get_artifact_handler")
    @patch("azdeploy.api.AppServiceClient")
    def test_functions(self, client: MagicMock, get_handler: MagicMock) -> None:
        app = client.return_value.create_or_update_function_app.return_value
        app.default_host_name = "myfunc.azurewebsites.net"
        config = FunctionAppConfig(app_name="myfunc", resource_group="rg")

        result = self.api.functions.deploy(config)

        self.assertEqual(result.url, "https://myfunc.azurewebsites.net")
        (deploy_type, staging, _), _ = get_handler.call_args
        self.assertEqual(deploy_type, DeployType.zip)
        self.assertIn("azure-functions", staging)
        get_handler.return_value.publish.assert_called_once()

    @patch("azdeploy.api.SpringCloudDeployer")
    def test_spring_cloud(self, deployer: MagicMock) -> None:
        config = SpringCloudAppConfig(cluster_name="mycluster", app_name="myapp")
        result = self.api.spring_cloud.deploy(config)

        deployer.assert_called_once_with(self.wrapper, "sub-1")
        deployer.return_value.deploy.assert_called_once_with(config)
        self.assertEqual(result, deployer.return_value.deploy.return_value)
