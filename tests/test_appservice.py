#!/usr/bin/env python
#
# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import unittest
from typing import Optional
from unittest.mock import MagicMock

import pytest
from azure.core.exceptions import ResourceNotFoundError

from azdeploy.appservice import (
    AppServiceClient,
    build_site_config,
    linux_fx_version,
    normalize_java_version,
    registry_settings,
    sku_description,
)
from azdeploy.enums import OS
from azdeploy.errors import DeployError
from azdeploy.models import (
    AppServicePlanConfig,
    DeploymentSlotSetting,
    FunctionAppConfig,
    RuntimeSetting,
    WebAppConfig,
)


@pytest.mark.parametrize(
    "runtime,expected",
    [
        (RuntimeSetting(), "JAVA|11-java11"),
        (RuntimeSetting(java_version="Java 17"), "JAVA|17-java17"),
        (RuntimeSetting(java_version="1.8"), "JAVA|8-jre8"),
        (
            RuntimeSetting(java_version="11", web_container="Tomcat 8.5"),
            "TOMCAT|8.5-java11",
        ),
        (RuntimeSetting(java_version="8", web_container="tomcat"), "TOMCAT|9.0-jre8"),
        (
            RuntimeSetting(java_version="8", web_container="jboss eap"),
            "JBOSSEAP|7-jre8",
        ),
        (RuntimeSetting(os=OS.docker, image="nginx:latest"), "DOCKER|nginx:latest"),
    ],
)
def test_linux_fx_version(runtime: RuntimeSetting, expected: str) -> None:
    assert linux_fx_version(runtime) == expected


def test_docker_requires_image() -> None:
    with pytest.raises(DeployError):
        linux_fx_version(RuntimeSetting(os=OS.docker))


@pytest.mark.parametrize(
    "name,tier",
    [
        ("F1", "Free"),
        ("B1", "Basic"),
        ("S2", "Standard"),
        ("P1", "Premium"),
        ("P1v2", "PremiumV2"),
        ("P2V3", "PremiumV3"),
        ("EP1", "ElasticPremium"),
        ("Y1", "Dynamic"),
    ],
)
def test_sku_description(name: str, tier: str) -> None:
    sku = sku_description(name)
    assert sku.name == name
    assert sku.tier == tier


def test_normalize_java_version() -> None:
    assert normalize_java_version(None) == "11"
    assert normalize_java_version("1.8") == "8"
    assert normalize_java_version("jre8") == "8"
    assert normalize_java_version(" Java 17 ") == "17"


class TestSiteConfig(unittest.TestCase):
    def test_windows_tomcat(self) -> None:
        config = build_site_config(RuntimeSetting(os=OS.windows, java_version="1.8"))
        self.assertEqual(config.java_version, "1.8")
        self.assertEqual(config.java_container, "TOMCAT")
        self.assertEqual(config.java_container_version, "8.5")
        self.assertIsNone(config.linux_fx_version)

    def test_windows_java_se(self) -> None:
        config = build_site_config(
            RuntimeSetting(os=OS.windows, java_version="11", web_container="java se")
        )
        self.assertEqual(config.java_version, "11")
        self.assertEqual(config.java_container, "JAVA")
        self.assertEqual(config.java_container_version, "SE")

    def test_linux(self) -> None:
        config = build_site_config(RuntimeSetting(os=OS.linux, java_version="17"))
        self.assertEqual(config.linux_fx_version, "JAVA|17-java17")

    def test_registry_settings(self) -> None:
        self.assertEqual(registry_settings(RuntimeSetting(os=OS.linux)), {})
        self.assertEqual(registry_settings(RuntimeSetting(os=OS.docker)), {})
        settings = registry_settings(
            RuntimeSetting(
                os=OS.docker,
                image="contoso.azurecr.io/app",
                registry_url="https://contoso.azurecr.io",
                registry_username="contoso",
                registry_password="secret",
            )
        )
        self.assertEqual(
            settings,
            {
                "DOCKER_REGISTRY_SERVER_URL": "https://contoso.azurecr.io",
                "DOCKER_REGISTRY_SERVER_USERNAME": "contoso",
                "DOCKER_REGISTRY_SERVER_PASSWORD": "secret",
            },
        )


def not_found(*args: str) -> None:
    raise ResourceNotFoundError("not found")


def make_site(name: str = "myapp") -> MagicMock:
    site = MagicMock()
    site.name = name
    site.location = "westeurope"
    site.server_farm_id = (
        "/subscriptions/00000000-0000-0000-0000-000000000000/resourceGroups/plan-rg"
        "/providers/Microsoft.Web/serverfarms/shared-plan"
    )
    return site


class TestPlans(unittest.TestCase):
    def setUp(self) -> None:
        self.client = MagicMock()
        self.appservice = AppServiceClient(client=self.client)
        self.plans = self.client.app_service_plans

    def created(self) -> MagicMock:
        self.assertEqual(self.plans.begin_create_or_update.call_count, 1)
        (resource_group, name, plan) = self.plans.begin_create_or_update.call_args[0]
        self.assertEqual((resource_group, name), ("rg", "asp-myapp"))
        return plan

    def test_requires_credentials(self) -> None:
        with self.assertRaises(ValueError):
            AppServiceClient()

    def test_create(self) -> None:
        self.plans.get.side_effect = not_found
        config = AppServicePlanConfig(name="asp-myapp", resource_group="rg")
        self.appservice.create_or_update_plan(config)

        plan = self.created()
        self.assertEqual(plan.sku.name, "P1v2")
        self.assertTrue(plan.reserved)
        self.assertEqual(plan.location, "westeurope")

    def test_create_windows_functions(self) -> None:
        self.plans.get.side_effect = not_found
        config = FunctionAppConfig(app_name="myapp", resource_group="rg")
        self.appservice.create_or_update_plan(config.plan_config(), "Y1")

        plan = self.created()
        self.assertEqual(plan.sku.tier, "Dynamic")
        self.assertFalse(plan.reserved)

    def test_update_tier(self) -> None:
        existing = MagicMock()
        existing.sku.name = "B1"
        self.plans.get.return_value = existing
        config = AppServicePlanConfig(
            name="asp-myapp", resource_group="rg", pricing_tier="S1"
        )
        self.appservice.create_or_update_plan(config)

        plan = self.created()
        self.assertEqual(plan.sku.name, "S1")

    def test_unchanged(self) -> None:
        existing = MagicMock()
        existing.sku.name = "S1"
        self.plans.get.return_value = existing
        for tier in [None, "S1"]:
            config = AppServicePlanConfig(
                name="asp-myapp", resource_group="rg", pricing_tier=tier
            )
            self.assertEqual(self.appservice.create_or_update_plan(config), existing)
        self.plans.begin_create_or_update.assert_not_called()


class TestWebApps(unittest.TestCase):
    def setUp(self) -> None:
        self.client = MagicMock()
        self.appservice = AppServiceClient(client=self.client)
        self.web_apps = self.client.web_apps

    def test_create_web_app(self) -> None:
        self.web_apps.get.side_effect = not_found
        self.client.app_service_plans.get.side_effect = not_found
        config = WebAppConfig(
            app_name="myapp",
            resource_group="rg",
            runtime=RuntimeSetting(java_version="11", web_container="tomcat 9.0"),
            app_settings={"KEY": "value"},
        )
        self.appservice.create_or_update_web_app(config)

        (resource_group, name, site) = self.web_apps.begin_create_or_update.call_args[0]
        self.assertEqual((resource_group, name), ("rg", "myapp"))
        self.assertEqual(site.kind, "app,linux")
        self.assertEqual(site.site_config.linux_fx_version, "TOMCAT|9.0-java11")
        self.assertEqual(
            [(x.name, x.value) for x in site.site_config.app_settings],
            [("KEY", "value")],
        )

    def test_update_web_app(self) -> None:
        self.web_apps.get.return_value = make_site()
        self.web_apps.list_application_settings.return_value.properties = {
            "KEY": "old",
            "OTHER": "kept",
        }
        config = WebAppConfig(
            app_name="myapp",
            resource_group="rg",
            runtime=RuntimeSetting(java_version="17"),
            app_settings={"KEY": "new"},
        )
        self.appservice.create_or_update_web_app(config)

        self.web_apps.begin_create_or_update.assert_not_called()
        self.client.app_service_plans.get.assert_not_called()
        (_, _, site_config) = self.web_apps.update_configuration.call_args[0]
        self.assertEqual(site_config.linux_fx_version, "JAVA|17-java17")
        (_, _, settings) = self.web_apps.update_application_settings.call_args[0]
        self.assertEqual(settings.properties, {"KEY": "new", "OTHER": "kept"})

    def test_update_tier_of_existing_plan(self) -> None:
        self.web_apps.get.return_value = make_site()
        existing = MagicMock()
        existing.sku.name = "P1v2"
        self.client.app_service_plans.get.return_value = existing
        config = WebAppConfig(
            app_name="myapp", resource_group="rg", pricing_tier="P2v2"
        )
        self.appservice.create_or_update_web_app(config)

        plans = self.client.app_service_plans
        plans.get.assert_called_once_with("plan-rg", "shared-plan")
        (resource_group, name, plan) = plans.begin_create_or_update.call_args[0]
        self.assertEqual((resource_group, name), ("plan-rg", "shared-plan"))
        self.assertEqual(plan.sku.name, "P2v2")
        self.assertEqual(plan.sku.tier, "PremiumV2")

    def test_existing_plan_already_on_tier(self) -> None:
        self.web_apps.get.return_value = make_site()
        existing = MagicMock()
        existing.sku.name = "EP1"
        self.client.app_service_plans.get.return_value = existing
        config = FunctionAppConfig(
            app_name="myapp", resource_group="rg", pricing_tier="EP1"
        )
        self.appservice.create_or_update_function_app(config)

        self.client.app_service_plans.get.assert_called_once_with(
            "plan-rg", "shared-plan"
        )
        self.client.app_service_plans.begin_create_or_update.assert_not_called()

    def test_missing_plan_of_existing_app(self) -> None:
        self.web_apps.get.return_value = make_site()
        self.client.app_service_plans.get.side_effect = not_found
        config = WebAppConfig(app_name="myapp", resource_group="rg", pricing_tier="S1")
        with self.assertRaises(DeployError):
            self.appservice.create_or_update_web_app(config)
        self.client.app_service_plans.begin_create_or_update.assert_not_called()

    def test_update_without_runtime(self) -> None:
        self.web_apps.get.return_value = make_site()
        config = WebAppConfig(app_name="myapp", resource_group="rg")
        self.appservice.create_or_update_web_app(config)
        self.web_apps.update_configuration.assert_not_called()
        self.web_apps.update_application_settings.assert_not_called()

    def test_create_function_app(self) -> None:
        self.web_apps.get.side_effect = not_found
        self.client.app_service_plans.get.side_effect = not_found
        config = FunctionAppConfig(
            app_name="myfunc",
            resource_group="rg",
            app_settings={"AzureWebJobsStorage": "connection"},
        )
        self.appservice.create_or_update_function_app(config)

        (_, _, site) = self.web_apps.begin_create_or_update.call_args[0]
        self.assertEqual(site.kind, "functionapp")
        self.assertEqual(site.site_config.java_version, "11")
        settings = {x.name: x.value for x in site.site_config.app_settings}
        self.assertEqual(settings["FUNCTIONS_WORKER_RUNTIME"], "java")
        self.assertEqual(settings["FUNCTIONS_EXTENSION_VERSION"], "~4")
        self.assertEqual(settings["AzureWebJobsStorage"], "connection")


class TestSlots(unittest.TestCase):
    def setUp(self) -> None:
        self.client = MagicMock()
        self.appservice = AppServiceClient(client=self.client)
        self.web_apps = self.client.web_apps
        self.app = make_site()

    def config(self, source: Optional[str] = None) -> WebAppConfig:
        return WebAppConfig(
            app_name="myapp",
            resource_group="rg",
            deployment_slot=DeploymentSlotSetting(
                name="staging", configuration_source=source
            ),
        )

    def test_existing_slot(self) -> None:
        slot = make_site("myapp/staging")
        self.web_apps.get_slot.return_value = slot
        self.assertEqual(
            self.appservice.get_or_create_slot(self.app, self.config()), slot
        )
        self.web_apps.begin_create_or_update_slot.assert_not_called()

    def test_parent_configuration(self) -> None:
        self.web_apps.get_slot.side_effect = not_found
        self.appservice.get_or_create_slot(self.app, self.config())

        self.web_apps.get_configuration.assert_called_once_with("rg", "myapp")
        (_, _, name, site) = self.web_apps.begin_create_or_update_slot.call_args[0]
        self.assertEqual(name, "staging")
        self.assertEqual(site.server_farm_id, self.app.server_farm_id)
        self.web_apps.update_configuration_slot.assert_called_once_with(
            "rg", "myapp", "staging", self.web_apps.get_configuration.return_value
        )
        self.web_apps.update_application_settings_slot.assert_called_once_with(
            "rg",
            "myapp",
            "staging",
            self.web_apps.list_application_settings.return_value,
        )

    def test_new_configuration(self) -> None:
        self.web_apps.get_slot.side_effect = not_found
        self.appservice.get_or_create_slot(self.app, self.config("new"))

        self.web_apps.begin_create_or_update_slot.assert_called_once()
        self.web_apps.get_configuration.assert_not_called()
        self.web_apps.update_configuration_slot.assert_not_called()
        self.web_apps.update_application_settings_slot.assert_not_called()

    def test_other_slot_configuration(self) -> None:
        other = make_site("myapp/testing")

        def get_slot(resource_group: str, name: str, slot: str) -> MagicMock:
            if slot == "testing":
                return other
            raise ResourceNotFoundError("not found")

        self.web_apps.get_slot.side_effect = get_slot
        self.appservice.get_or_create_slot(self.app, self.config("testing"))
        self.web_apps.get_configuration_slot.assert_called_once_with(
            "rg", "myapp", "testing"
        )
        self.web_apps.update_configuration_slot.assert_called_once()

    def test_missing_other_slot(self) -> None:
        self.web_apps.get_slot.side_effect = not_found
        with self.assertRaises(DeployError) as ctx:
            self.appservice.get_or_create_slot(self.app, self.config("missing"))
        self.assertIn("Failed to get the deployment slot 'missing'", str(ctx.exception))
        self.web_apps.begin_create_or_update_slot.assert_not_called()

    def test_requires_slot(self) -> None:
        config = WebAppConfig(app_name="myapp", resource_group="rg")
        with self.assertRaises(DeployError):
            self.appservice.get_or_create_slot(self.app, config)
