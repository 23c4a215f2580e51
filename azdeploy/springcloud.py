#!/usr/bin/env python
#
# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import logging
import os
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple

from azure.core.exceptions import ResourceNotFoundError
from azure.mgmt.appplatform import AppPlatformManagementClient
from azure.mgmt.appplatform.models import (
    ActiveDeploymentCollection,
    AppResource,
    AppResourceProperties,
    DeploymentResource,
    DeploymentResourceProperties,
    DeploymentSettings,
    JarUploadedUserSourceInfo,
    PersistentDisk,
    ResourceRequests,
    Sku,
)
from azure.mgmt.core.tools import parse_resource_id
from azure.storage.fileshare import ShareFileClient

from .auth.retriever import AzureCredentialWrapper
from .errors import DeployError
from .models import DEFAULT_DEPLOYMENT_NAME, DeployResult, SpringCloudAppConfig

DEFAULT_RUNTIME_VERSION = "Java_11"
PERSISTENT_DISK_SIZE_GB = 50
BASIC_PERSISTENT_DISK_SIZE_GB = 1
PERSISTENT_DISK_MOUNT_PATH = "/persistent"

LOGGER = logging.getLogger("azdeploy.deploy")


class SpringCloudTask(NamedTuple):
    title: str
    run: Callable[[], Any]


def persistent_disk_size(service: Any) -> int:
    """Basic tier services only allow a 1 GB persistent disk"""
    tier = service.sku.tier if service.sku is not None else None
    if (tier or "").lower() == "basic":
        return BASIC_PERSISTENT_DISK_SIZE_GB
    return PERSISTENT_DISK_SIZE_GB


def first_non_blank(*values: Optional[str]) -> Optional[str]:
    for value in values:
        if value and value.strip():
            return value
    return None


class SpringCloudDeployer:
    def __init__(
        self,
        wrapper: Optional[AzureCredentialWrapper] = None,
        subscription_id: Optional[str] = None,
        client: Optional[Any] = None,
    ) -> None:
        if client is None:
            if wrapper is None or subscription_id is None:
                raise ValueError("credentials and subscription are required")
            client = AppPlatformManagementClient(
                wrapper.credential, subscription_id, **wrapper.management_client_args()
            )
        self.client = client

    def find_cluster(
        self, name: str, resource_group: Optional[str] = None
    ) -> Tuple[str, Any]:
        for service in self.client.services.list_by_subscription():
            if service.name.lower() != name.lower():
                continue
            group = parse_resource_id(service.id)["resource_group"]
            if resource_group and group.lower() != resource_group.lower():
                continue
            return (group, service)
        raise DeployError("Service(%s) is not found" % name)

    def get_app(self, resource_group: str, service: str, app: str) -> Optional[Any]:
        try:
            return self.client.apps.get(resource_group, service, app)
        except ResourceNotFoundError:
            return None

    def get_active_deployment_name(
        self, resource_group: str, service: str, app: str
    ) -> Optional[str]:
        for deployment in self.client.deployments.list(resource_group, service, app):
            if deployment.properties is not None and deployment.properties.active:
                return str(deployment.name)
        return None

    def deployment_exists(
        self, resource_group: str, service: str, app: str, deployment: str
    ) -> bool:
        try:
            self.client.deployments.get(resource_group, service, app, deployment)
        except ResourceNotFoundError:
            return False
        return True

    def upload_artifact(
        self, resource_group: str, service: str, app: str, path: str
    ) -> str:
        definition = self.client.apps.get_resource_upload_url(
            resource_group, service, app
        )
        file_client = ShareFileClient.from_file_url(definition.upload_url)
        with open(path, "rb") as handle:
            file_client.upload_file(handle)
        return str(definition.relative_path)

    def build_tasks(
        self,
        config: SpringCloudAppConfig,
        located: Optional[Tuple[str, Any]] = None,
    ) -> List[SpringCloudTask]:
        settings = config.deployment
        artifact = settings.artifact
        if not artifact:
            raise DeployError("Deployment artifact can not be null")
        if not os.path.isfile(artifact):
            raise DeployError("Deployment artifact %s does not exist" % artifact)

        cluster = config.cluster_name
        app_name = config.app_name
        if located is None:
            located = self.find_cluster(cluster, config.resource_group)
        resource_group, service = located

        app = self.get_app(resource_group, cluster, app_name)
        current_active = None
        if app is not None:
            current_active = self.get_active_deployment_name(
                resource_group, cluster, app_name
            )
        deployment_name = (
            first_non_blank(
                settings.deployment_name,
                config.active_deployment_name,
                current_active,
            )
            or DEFAULT_DEPLOYMENT_NAME
        )

        create_app = app is None
        create_deployment = create_app or not self.deployment_exists(
            resource_group, cluster, app_name, deployment_name
        )
        uploaded: Dict[str, str] = {}

        def create() -> None:
            self.client.apps.begin_create_or_update(
                resource_group,
                cluster,
                app_name,
                AppResource(properties=AppResourceProperties()),
            ).result()

        def upload() -> None:
            uploaded["relative_path"] = self.upload_artifact(
                resource_group, cluster, app_name, artifact
            )

        def deploy() -> None:
            scale = settings.scale_settings
            resource = DeploymentResource(
                properties=DeploymentResourceProperties(
                    source=JarUploadedUserSourceInfo(
                        relative_path=uploaded["relative_path"],
                        runtime_version=settings.runtime_version
                        or DEFAULT_RUNTIME_VERSION,
                        jvm_options=settings.jvm_options,
                    ),
                    deployment_settings=DeploymentSettings(
                        environment_variables=settings.environment or None,
                        resource_requests=ResourceRequests(
                            cpu=scale.cpu, memory=scale.memory
                        )
                        if scale.cpu or scale.memory
                        else None,
                    ),
                ),
                sku=Sku(capacity=scale.instance_count)
                if scale.instance_count
                else None,
            )
            self.client.deployments.begin_create_or_update(
                resource_group, cluster, app_name, deployment_name, resource
            ).result()

        # the active deployment stays active
        activate = first_non_blank(
            current_active, deployment_name if create_deployment else None
        )
        properties = app.properties if app is not None else None
        is_public = bool(properties.public) if properties is not None else False
        has_disk = bool(
            properties is not None
            and properties.persistent_disk is not None
            and properties.persistent_disk.size_in_gb
        )
        change_active = activate is not None and activate != current_active
        change_public = config.is_public is not None and config.is_public != is_public
        change_disk = settings.enable_persistent_storage and not has_disk

        def update() -> None:
            if change_public or change_disk:
                update_properties = AppResourceProperties(public=config.is_public)
                if change_disk:
                    update_properties.persistent_disk = PersistentDisk(
                        size_in_gb=persistent_disk_size(service),
                        mount_path=PERSISTENT_DISK_MOUNT_PATH,
                    )
                self.client.apps.begin_update(
                    resource_group,
                    cluster,
                    app_name,
                    AppResource(properties=update_properties),
                ).result()
            if change_active:
                self.client.apps.begin_set_active_deployments(
                    resource_group,
                    cluster,
                    app_name,
                    ActiveDeploymentCollection(active_deployment_names=[activate]),
                ).result()

        tasks = []
        if create_app:
            tasks.append(
                SpringCloudTask(
                    "Create new app(%s) on service(%s)" % (app_name, cluster), create
                )
            )
        tasks.append(
            SpringCloudTask(
                "Upload artifact(%s) to app(%s)" % (artifact, app_name), upload
            )
        )
        if create_deployment:
            title = "Create new deployment(%s) in app(%s)" % (deployment_name, app_name)
        else:
            title = "Update deployment(%s) of app(%s)" % (deployment_name, app_name)
        tasks.append(SpringCloudTask(title, deploy))
        if change_active or change_public or change_disk:
            tasks.append(
                SpringCloudTask(
                    "Update app(%s) of service(%s)" % (app_name, cluster), update
                )
            )
        return tasks

    def deploy(self, config: SpringCloudAppConfig) -> DeployResult:
        located = self.find_cluster(config.cluster_name, config.resource_group)
        for task in self.build_tasks(config, located):
            LOGGER.info(task.title)
            task.run()

        resource_group = located[0]
        app = self.get_app(resource_group, config.cluster_name, config.app_name)
        url = None
        if app is not None and app.properties is not None and app.properties.public:
            url = app.properties.url
        return DeployResult(
            name=config.app_name,
            url=url,
            deployment=self.get_active_deployment_name(
                resource_group, config.cluster_name, config.app_name
            ),
        )
