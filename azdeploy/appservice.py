#!/usr/bin/env python
#
# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import logging
from typing import Any, Dict, List, Optional

from azure.core.exceptions import ResourceNotFoundError
from azure.mgmt.core.tools import parse_resource_id
from azure.mgmt.web import WebSiteManagementClient
from azure.mgmt.web.models import (
    AppServicePlan,
    NameValuePair,
    Site,
    SiteConfig,
    SkuDescription,
    StringDictionary,
)

from .auth.retriever import AzureCredentialWrapper
from .enums import OS, ConfigurationSource
from .errors import DeployError
from .models import (
    DEFAULT_PRICING_TIER,
    AppServicePlanConfig,
    FunctionAppConfig,
    RuntimeSetting,
    WebAppConfig,
)

DEFAULT_WEB_CONTAINER = "tomcat 8.5"
DEFAULT_JAVA_VERSION = "11"
DEFAULT_FUNCTIONS_TIER = "Y1"
DEFAULT_DOCKER_REGISTRY = "https://index.docker.io"
FUNCTIONS_EXTENSION_VERSION = "~4"

SKU_TIERS = {
    "F": "Free",
    "D": "Shared",
    "B": "Basic",
    "S": "Standard",
    "P": "Premium",
    "Y": "Dynamic",
    "EP": "ElasticPremium",
    "I": "Isolated",
}

LOGGER = logging.getLogger("azdeploy.deploy")


def sku_description(name: str) -> SkuDescription:
    prefix = ""
    for char in name.upper():
        if char.isdigit():
            break
        prefix += char
    tier = SKU_TIERS.get(prefix, "Standard")
    lowered = name.lower()
    if tier == "Premium" and lowered.endswith("v2"):
        tier = "PremiumV2"
    elif tier == "Premium" and lowered.endswith("v3"):
        tier = "PremiumV3"
    return SkuDescription(name=name, tier=tier)


def normalize_java_version(value: Optional[str]) -> str:
    version = (value or DEFAULT_JAVA_VERSION).strip().lower()
    for prefix in ["java", "jre"]:
        if version.startswith(prefix):
            version = version[len(prefix) :].strip()
    if version == "1.8":
        version = "8"
    return version


def linux_fx_version(runtime: RuntimeSetting) -> str:
    if runtime.os == OS.docker:
        if not runtime.image:
            raise DeployError("docker runtime requires an image")
        return "DOCKER|%s" % runtime.image

    java = normalize_java_version(runtime.java_version)
    suffix = "jre8" if java == "8" else "java%s" % java
    container = (runtime.web_container or "").strip().lower()
    if container.startswith("tomcat"):
        version = container[len("tomcat") :].strip() or "9.0"
        return "TOMCAT|%s-%s" % (version, suffix)
    if container.startswith("jboss"):
        return "JBOSSEAP|7-%s" % suffix
    return "JAVA|%s-%s" % (java, suffix)


def build_site_config(runtime: RuntimeSetting) -> SiteConfig:
    if runtime.os == OS.windows:
        container = (runtime.web_container or DEFAULT_WEB_CONTAINER).strip().lower()
        if container.startswith("tomcat"):
            java_container = "TOMCAT"
            version = container[len("tomcat") :].strip() or "9.0"
        else:
            java_container = "JAVA"
            version = "SE"
        java = normalize_java_version(runtime.java_version)
        return SiteConfig(
            java_version="1.8" if java == "8" else java,
            java_container=java_container,
            java_container_version=version,
        )
    return SiteConfig(linux_fx_version=linux_fx_version(runtime))


def registry_settings(runtime: RuntimeSetting) -> Dict[str, str]:
    if runtime.os != OS.docker or not runtime.registry_username:
        return {}
    return {
        "DOCKER_REGISTRY_SERVER_URL": runtime.registry_url or DEFAULT_DOCKER_REGISTRY,
        "DOCKER_REGISTRY_SERVER_USERNAME": runtime.registry_username,
        "DOCKER_REGISTRY_SERVER_PASSWORD": runtime.registry_password or "",
    }


def name_value_pairs(settings: Dict[str, str]) -> List[NameValuePair]:
    return [NameValuePair(name=k, value=v) for (k, v) in sorted(settings.items())]


class AppServiceClient:
    def __init__(
        self,
        wrapper: Optional[AzureCredentialWrapper] = None,
        subscription_id: Optional[str] = None,
        client: Optional[Any] = None,
    ) -> None:
        if client is None:
            if wrapper is None or subscription_id is None:
                raise ValueError("credentials and subscription are required")
            client = WebSiteManagementClient(
                wrapper.credential, subscription_id, **wrapper.management_client_args()
            )
        self.client = client

    def get_plan(self, resource_group: str, name: str) -> Optional[AppServicePlan]:
        try:
            return self.client.app_service_plans.get(resource_group, name)
        except ResourceNotFoundError:
            return None

    def create_or_update_plan(
        self, config: AppServicePlanConfig, default_tier: str = DEFAULT_PRICING_TIER
    ) -> AppServicePlan:
        plan = self.get_plan(config.resource_group, config.name)
        if plan is None:
            LOGGER.info("creating app service plan %s", config.name)
            plan = AppServicePlan(
                location=config.region,
                sku=sku_description(config.pricing_tier or default_tier),
                reserved=config.os != OS.windows,
                kind="app" if config.os == OS.windows else "linux",
            )
        elif config.pricing_tier and plan.sku.name != config.pricing_tier:
            LOGGER.info(
                "updating pricing tier of app service plan %s to %s",
                config.name,
                config.pricing_tier,
            )
            plan.sku = sku_description(config.pricing_tier)
        else:
            return plan

        return self.client.app_service_plans.begin_create_or_update(
            config.resource_group, config.name, plan
        ).result()

    def update_plan_tier(self, app: Site, pricing_tier: str) -> AppServicePlan:
        """Change the pricing tier of the plan an existing app runs on"""
        parsed = parse_resource_id(app.server_farm_id)
        resource_group = parsed["resource_group"]
        name = parsed["name"]
        plan = self.get_plan(resource_group, name)
        if plan is None:
            raise DeployError(
                "Failed to get the app service plan '%s' of app '%s'" % (name, app.name)
            )
        if plan.sku.name == pricing_tier:
            return plan

        LOGGER.info(
            "updating pricing tier of app service plan %s to %s", name, pricing_tier
        )
        plan.sku = sku_description(pricing_tier)
        return self.client.app_service_plans.begin_create_or_update(
            resource_group, name, plan
        ).result()

    def get_web_app(self, resource_group: str, name: str) -> Optional[Site]:
        try:
            return self.client.web_apps.get(resource_group, name)
        except ResourceNotFoundError:
            return None

    def get_slot(self, resource_group: str, name: str, slot: str) -> Optional[Site]:
        try:
            return self.client.web_apps.get_slot(resource_group, name, slot)
        except ResourceNotFoundError:
            return None

    def merge_app_settings(
        self, resource_group: str, name: str, settings: Dict[str, str]
    ) -> None:
        if not settings:
            return
        current = self.client.web_apps.list_application_settings(resource_group, name)
        merged = dict(current.properties or {})
        merged.update(settings)
        self.client.web_apps.update_application_settings(
            resource_group, name, StringDictionary(properties=merged)
        )

    def create_or_update_web_app(self, config: WebAppConfig) -> Site:
        settings = dict(config.app_settings)
        settings.update(registry_settings(config.runtime))

        app = self.get_web_app(config.resource_group, config.app_name)
        if app is None:
            plan = self.create_or_update_plan(config.plan_config())
            LOGGER.info("creating web app %s", config.app_name)
            site_config = build_site_config(config.runtime)
            site_config.app_settings = name_value_pairs(settings)
            linux = config.runtime.os != OS.windows
            site = Site(
                location=config.region,
                server_farm_id=plan.id,
                reserved=linux,
                kind="app,linux" if linux else "app",
                site_config=site_config,
            )
            return self.client.web_apps.begin_create_or_update(
                config.resource_group, config.app_name, site
            ).result()

        LOGGER.info("updating web app %s", config.app_name)
        if config.pricing_tier:
            self.update_plan_tier(app, config.pricing_tier)
        if not config.runtime.is_empty():
            self.client.web_apps.update_configuration(
                config.resource_group,
                config.app_name,
                build_site_config(config.runtime),
            )
        self.merge_app_settings(config.resource_group, config.app_name, settings)
        return self.client.web_apps.get(config.resource_group, config.app_name)

    def get_or_create_slot(self, app: Site, config: WebAppConfig) -> Site:
        if config.deployment_slot is None:
            raise DeployError("no deployment slot configured")

        resource_group = config.resource_group
        slot_name = config.deployment_slot.name
        slot = self.get_slot(resource_group, app.name, slot_name)
        if slot is not None:
            return slot

        source_text = config.deployment_slot.configuration_source
        source = ConfigurationSource.parse(source_text)
        source_config = None
        source_settings = None
        if source == ConfigurationSource.parent:
            source_config = self.client.web_apps.get_configuration(
                resource_group, app.name
            )
            source_settings = self.client.web_apps.list_application_settings(
                resource_group, app.name
            )
        elif source == ConfigurationSource.others:
            source_slot = (source_text or "").strip()
            if self.get_slot(resource_group, app.name, source_slot) is None:
                raise DeployError(
                    "Failed to get the deployment slot '%s' in app '%s'"
                    % (source_slot, app.name)
                )
            source_config = self.client.web_apps.get_configuration_slot(
                resource_group, app.name, source_slot
            )
            source_settings = self.client.web_apps.list_application_settings_slot(
                resource_group, app.name, source_slot
            )

        LOGGER.info(
            "creating deployment slot %s of %s with %s configuration",
            slot_name,
            app.name,
            source.value,
        )
        slot = self.client.web_apps.begin_create_or_update_slot(
            resource_group,
            app.name,
            slot_name,
            Site(
                location=app.location,
                server_farm_id=app.server_farm_id,
                site_config=SiteConfig(),
            ),
        ).result()

        if source_config is not None:
            self.client.web_apps.update_configuration_slot(
                resource_group, app.name, slot_name, source_config
            )
        if source_settings is not None:
            self.client.web_apps.update_application_settings_slot(
                resource_group, app.name, slot_name, source_settings
            )
        return slot

    def create_or_update_function_app(self, config: FunctionAppConfig) -> Site:
        settings = {
            "FUNCTIONS_EXTENSION_VERSION": FUNCTIONS_EXTENSION_VERSION,
            "FUNCTIONS_WORKER_RUNTIME": "java",
        }
        settings.update(config.app_settings)

        app = self.get_web_app(config.resource_group, config.app_name)
        if app is not None:
            LOGGER.info("updating function app %s", config.app_name)
            if config.pricing_tier:
                self.update_plan_tier(app, config.pricing_tier)
            self.merge_app_settings(config.resource_group, config.app_name, settings)
            return self.client.web_apps.get(config.resource_group, config.app_name)

        plan = self.create_or_update_plan(config.plan_config(), DEFAULT_FUNCTIONS_TIER)
        LOGGER.info("creating function app %s", config.app_name)
        java = normalize_java_version(config.java_version)
        linux = config.os == OS.linux
        if linux:
            site_config = SiteConfig(linux_fx_version="Java|%s" % java)
        else:
            site_config = SiteConfig(java_version="1.8" if java == "8" else java)
        site_config.app_settings = name_value_pairs(settings)
        site = Site(
            location=config.region,
            server_farm_id=plan.id,
            reserved=linux,
            kind="functionapp,linux" if linux else "functionapp",
            site_config=site_config,
        )
        return self.client.web_apps.begin_create_or_update(
            config.resource_group, config.app_name, site
        ).result()
