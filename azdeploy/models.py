#!/usr/bin/env python
#
# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, validator

from .enums import OS, AuthType, CloudName, DeployType
from .primitives import check_app_name

DEFAULT_REGION = "westeurope"
DEFAULT_PRICING_TIER = "P1v2"
DEFAULT_BUILD_DIRECTORY = "target"
DEFAULT_DEPLOYMENT_NAME = "default"


class AuthConfiguration(BaseModel):
    type: AuthType = AuthType.auto
    client: Optional[str] = None
    tenant: Optional[str] = None
    key: Optional[str] = None
    certificate: Optional[str] = None
    certificate_password: Optional[str] = None
    environment: CloudName = CloudName.azure

    @validator("type", pre=True)
    def parse_type(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return AuthType.parse(value)
        return value

    @validator("environment", pre=True)
    def parse_environment(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return CloudName.parse(value)
        return value


class SubscriptionInfo(BaseModel):
    id: str
    name: str
    tenant_id: Optional[str] = None
    email: Optional[str] = None
    selected: bool = False
    environment: CloudName = CloudName.azure


class CredentialInfo(BaseModel):
    auth_type: AuthType
    environment: CloudName
    tenant_id: Optional[str] = None
    subscription_id: Optional[str] = None
    email: Optional[str] = None


class PublishingProfile(BaseModel):
    ftp_url: str
    ftp_username: str
    ftp_password: str

    def ftp_server(self) -> str:
        return self.ftp_url.split("/", 1)[0]


class Resource(BaseModel):
    """A directory whose matching files are copied into the staging directory"""

    directory: str
    target_path: Optional[str] = None
    includes: List[str] = ["**/*"]
    excludes: List[str] = []


class RuntimeSetting(BaseModel):
    os: Optional[OS] = None
    java_version: Optional[str] = None
    web_container: Optional[str] = None
    image: Optional[str] = None
    registry_url: Optional[str] = None
    registry_username: Optional[str] = None
    registry_password: Optional[str] = None

    def is_empty(self) -> bool:
        return not any(
            [
                self.os,
                self.java_version,
                self.web_container,
                self.image,
                self.registry_url,
            ]
        )


class DeploymentSlotSetting(BaseModel):
    name: str
    configuration_source: Optional[str] = None

    @validator("name")
    def check_name(cls, value: str) -> str:
        return check_app_name(value)


class AppServicePlanConfig(BaseModel):
    name: str
    resource_group: str
    region: str = DEFAULT_REGION
    pricing_tier: Optional[str] = None
    os: OS = OS.linux


class WebAppConfig(BaseModel):
    subscription_id: Optional[str] = None
    app_name: str
    resource_group: str
    region: str = DEFAULT_REGION
    pricing_tier: Optional[str] = None
    app_service_plan_name: Optional[str] = None
    app_service_plan_resource_group: Optional[str] = None
    runtime: RuntimeSetting = RuntimeSetting()
    app_settings: Dict[str, str] = {}
    deployment_slot: Optional[DeploymentSlotSetting] = None
    deploy_type: DeployType = DeployType.zip
    build_directory: str = DEFAULT_BUILD_DIRECTORY
    resources: List[Resource] = []
    war_file: Optional[str] = None
    context_path: Optional[str] = None

    @validator("app_name")
    def check_name(cls, value: str) -> str:
        return check_app_name(value)

    def plan_config(self) -> AppServicePlanConfig:
        return AppServicePlanConfig(
            name=self.app_service_plan_name or "asp-%s" % self.app_name,
            resource_group=self.app_service_plan_resource_group
            or self.resource_group,
            region=self.region,
            pricing_tier=self.pricing_tier,
            os=OS.windows if self.runtime.os == OS.windows else OS.linux,
        )


class FunctionAppConfig(BaseModel):
    subscription_id: Optional[str] = None
    app_name: str
    resource_group: str
    region: str = DEFAULT_REGION
    pricing_tier: Optional[str] = None
    app_service_plan_name: Optional[str] = None
    os: OS = OS.windows
    java_version: str = "11"
    app_settings: Dict[str, str] = {}
    build_directory: str = DEFAULT_BUILD_DIRECTORY
    resources: List[Resource] = []

    @validator("app_name")
    def check_name(cls, value: str) -> str:
        return check_app_name(value)

    @validator("os")
    def check_os(cls, value: OS) -> OS:
        if value == OS.docker:
            raise ValueError("docker is not supported for function apps")
        return value

    def plan_config(self) -> AppServicePlanConfig:
        return AppServicePlanConfig(
            name=self.app_service_plan_name or "asp-%s" % self.app_name,
            resource_group=self.resource_group,
            region=self.region,
            pricing_tier=self.pricing_tier,
            os=self.os,
        )


class ScaleSettings(BaseModel):
    cpu: Optional[str] = None
    memory: Optional[str] = None
    instance_count: Optional[int] = None


class SpringCloudDeploymentConfig(BaseModel):
    deployment_name: Optional[str] = None
    artifact: Optional[str] = None
    jvm_options: Optional[str] = None
    environment: Dict[str, str] = {}
    runtime_version: Optional[str] = None
    scale_settings: ScaleSettings = ScaleSettings()
    enable_persistent_storage: bool = False


class SpringCloudAppConfig(BaseModel):
    subscription_id: Optional[str] = None
    cluster_name: str
    app_name: str
    resource_group: Optional[str] = None
    is_public: Optional[bool] = None
    active_deployment_name: Optional[str] = None
    deployment: SpringCloudDeploymentConfig = SpringCloudDeploymentConfig()

    @validator("app_name")
    def check_name(cls, value: str) -> str:
        return check_app_name(value)


class DeployResult(BaseModel):
    name: str
    url: Optional[str] = None
    deployment: Optional[str] = None
