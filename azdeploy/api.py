#!/usr/bin/env python
#
# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import logging
from typing import Any, Dict, List, Optional

from .appservice import AppServiceClient
from .artifact import get_artifact_handler, staging_directory
from .auth.manager import AzureAuthManager
from .auth.retriever import AzureCredentialWrapper
from .config import ConfigStore, ToolConfig
from .enums import AuthType, CloudName, DeployType
from .errors import DeployError
from .models import (
    CredentialInfo,
    DeployResult,
    FunctionAppConfig,
    SpringCloudAppConfig,
    SubscriptionInfo,
    WebAppConfig,
)
from .springcloud import SpringCloudDeployer
from .targets import (
    DeploymentSlotDeployTarget,
    DeployTarget,
    FunctionAppDeployTarget,
    WebAppDeployTarget,
)

WEBAPP_TOOL_NAME = "azure-webapp"
FUNCTIONS_TOOL_NAME = "azure-functions"


class Endpoint:
    def __init__(self, azdeploy: "AzDeploy"):
        self.azdeploy = azdeploy
        self.logger = azdeploy.logger

    def _app_service(self, subscription_id: Optional[str]) -> AppServiceClient:
        wrapper = self.azdeploy._credential()
        return AppServiceClient(
            wrapper, self.azdeploy._subscription(wrapper, subscription_id)
        )


class Auth(Endpoint):
    """Inspect Azure credentials"""

    def show(self) -> CredentialInfo:
        """Show which credentials are in use"""
        wrapper = self.azdeploy._credential()
        return wrapper.info(self.azdeploy._subscription(wrapper, None))

    def subscriptions(self) -> List[SubscriptionInfo]:
        """List the subscriptions visible to the current credentials"""
        return self.azdeploy._credential().list_subscriptions()


class WebApp(Endpoint):
    """Deploy to App Service web apps"""

    def _publish(self, config: WebAppConfig, target: DeployTarget) -> None:
        staging = staging_directory(
            config.build_directory, WEBAPP_TOOL_NAME, config.app_name
        )
        handler = get_artifact_handler(
            config.deploy_type,
            staging,
            resources=config.resources,
            war_file=config.war_file,
            context_path=config.context_path,
        )
        handler.publish(target)

    def deploy(self, config: WebAppConfig) -> DeployResult:
        """
        Create or update a web app, then deploy its artifacts

        :param WebAppConfig config: Web app configuration.  Use @file to read from a file.
        """
        client = self._app_service(config.subscription_id)
        app = client.create_or_update_web_app(config)
        target = WebAppDeployTarget(app, client.client)
        self._publish(config, target)
        self.logger.info("successfully deployed web app %s", config.app_name)
        return DeployResult(
            name=config.app_name, url="https://%s" % target.get_default_host_name()
        )

    def deploy_slot(self, config: WebAppConfig) -> DeployResult:
        """
        Deploy artifacts to a deployment slot of an existing web app

        :param WebAppConfig config: Web app configuration including deployment_slot.
        """
        if config.deployment_slot is None:
            raise DeployError("deployment_slot is required to deploy to a slot")

        client = self._app_service(config.subscription_id)
        app = client.get_web_app(config.resource_group, config.app_name)
        if app is None:
            raise DeployError(
                "The web app %s does not exist in resource group %s"
                % (config.app_name, config.resource_group)
            )

        slot = client.get_or_create_slot(app, config)
        target = DeploymentSlotDeployTarget(
            slot, client.client, config.app_name, config.deployment_slot.name
        )
        self._publish(config, target)
        self.logger.info(
            "successfully deployed slot %s of web app %s",
            config.deployment_slot.name,
            config.app_name,
        )
        return DeployResult(
            name=config.app_name,
            url="https://%s" % target.get_default_host_name(),
            deployment=config.deployment_slot.name,
        )


class Functions(Endpoint):
    """Deploy to function apps"""

    def deploy(self, config: FunctionAppConfig) -> DeployResult:
        """
        Create or update a function app, then zip deploy its staging directory

        :param FunctionAppConfig config: Function app configuration.
        """
        client = self._app_service(config.subscription_id)
        app = client.create_or_update_function_app(config)
        target = FunctionAppDeployTarget(app, client.client)
        staging = staging_directory(
            config.build_directory, FUNCTIONS_TOOL_NAME, config.app_name
        )
        handler = get_artifact_handler(DeployType.zip, staging, config.resources)
        handler.publish(target)
        self.logger.info("successfully deployed function app %s", config.app_name)
        return DeployResult(
            name=config.app_name, url="https://%s" % target.get_default_host_name()
        )


class SpringCloud(Endpoint):
    """Deploy to Azure Spring Cloud"""

    def deploy(self, config: SpringCloudAppConfig) -> DeployResult:
        """
        Deploy an artifact to a Spring Cloud app, creating the app and deployment as needed

        :param SpringCloudAppConfig config: Spring Cloud app configuration.
        """
        wrapper = self.azdeploy._credential()
        deployer = SpringCloudDeployer(
            wrapper, self.azdeploy._subscription(wrapper, config.subscription_id)
        )
        return deployer.deploy(config)


class AzDeploy:
    def __init__(
        self,
        config_path: Optional[str] = None,
        auth_manager: Optional[AzureAuthManager] = None,
    ) -> None:
        self.logger = logging.getLogger("azdeploy")
        self._store = ConfigStore(config_path)
        self._auth_manager = auth_manager or AzureAuthManager()
        self._wrapper: Optional[AzureCredentialWrapper] = None

        self.auth = Auth(self)
        self.webapp = WebApp(self)
        self.functions = Functions(self)
        self.spring_cloud = SpringCloud(self)

        self.__setup__()

    def __setup__(
        self,
        subscription_id: Optional[str] = None,
        auth_type: Optional[AuthType] = None,
    ) -> None:
        if subscription_id is not None:
            self._store.config.subscription_id = subscription_id
        if auth_type is not None:
            self._store.config.auth.type = auth_type
            self._wrapper = None

    def _credential(self) -> AzureCredentialWrapper:
        if self._wrapper is None:
            self._wrapper = self._auth_manager.get_credential(self._store.config.auth)
        return self._wrapper

    def _subscription(
        self, wrapper: AzureCredentialWrapper, configured: Optional[str]
    ) -> str:
        return wrapper.resolve_subscription(
            configured or self._store.config.subscription_id
        )

    def login(self) -> CredentialInfo:
        """Acquire credentials using the configured auth type"""
        self._wrapper = None
        wrapper = self._credential()
        return wrapper.info(self._store.config.subscription_id)

    def logout(self) -> None:
        """Remove cached device code credentials"""
        self.logger.debug("logout")
        self._wrapper = None
        if not self._auth_manager.logout():
            self.logger.info("no cached credentials to remove")

    def config(
        self,
        auth_type: Optional[AuthType] = None,
        client: Optional[str] = None,
        tenant: Optional[str] = None,
        key: Optional[str] = None,
        certificate: Optional[str] = None,
        certificate_password: Optional[str] = None,
        environment: Optional[CloudName] = None,
        subscription_id: Optional[str] = None,
        reset: Optional[bool] = None,
    ) -> ToolConfig:
        """Configure the azdeploy CLI"""
        self.logger.debug("set config")

        if reset:
            self._store.config = ToolConfig()

        auth = self._store.config.auth
        updates: Dict[str, Any] = {
            "type": auth_type,
            "client": client,
            "tenant": tenant,
            "key": key,
            "certificate": certificate,
            "certificate_password": certificate_password,
            "environment": environment,
        }
        for (name, value) in updates.items():
            if value is not None:
                setattr(auth, name, value)
        if subscription_id is not None:
            self._store.config.subscription_id = subscription_id

        self._wrapper = None
        self._store.save_config()
        return self._store.config.masked()
