#!/usr/bin/env python
#
# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import logging
import os
import re
import shutil
from typing import List, Optional, Pattern

from memoization import cached

from .enums import DeployType
from .errors import DeployError
from .ftp import FTPUploader
from .models import Resource
from .targets import DeployTarget

DEFAULT_WEBAPP_ROOT = "/site/wwwroot"
DEFAULT_MAX_RETRY_TIMES = 3
NO_RESOURCES_CONFIG = "No resources specified. Skip artifacts deployment."

LOGGER = logging.getLogger("azdeploy.deploy")


def staging_directory(build_directory: str, tool_name: str, app_name: str) -> str:
    return os.path.abspath(os.path.join(build_directory, tool_name, app_name))


@cached
def ant_pattern(pattern: str) -> Pattern[str]:
    """
    Compile an Ant style path pattern.

    `*` and `?` match within a single path segment, `**` matches any number of
    directories and a trailing `/` stands for everything below the directory.
    """
    pattern = pattern.replace("\\", "/")
    if pattern.startswith("./"):
        pattern = pattern[2:]
    if pattern.endswith("/"):
        pattern += "**"

    result = ""
    index = 0
    while index < len(pattern):
        if pattern.startswith("**/", index):
            result += "(?:.*/)?"
            index += 3
        elif pattern.startswith("**", index):
            result += ".*"
            index += 2
        elif pattern[index] == "*":
            result += "[^/]*"
            index += 1
        elif pattern[index] == "?":
            result += "[^/]"
            index += 1
        else:
            result += re.escape(pattern[index])
            index += 1
    return re.compile(result)


def _matches(path: str, patterns: List[str]) -> bool:
    return any(ant_pattern(x).fullmatch(path) for x in patterns)


def prepare_resources(resources: List[Resource], staging_dir: str) -> None:
    staging = os.path.abspath(staging_dir)
    # earlier output is never copied back into itself
    skipped_files = [staging + ".zip"]

    for resource in resources:
        if not os.path.isdir(resource.directory):
            LOGGER.warning("resource directory %s does not exist", resource.directory)
            continue

        target = os.path.join(staging_dir, resource.target_path or "")
        for root, dirs, files in os.walk(resource.directory):
            dirs[:] = sorted(
                x for x in dirs if os.path.abspath(os.path.join(root, x)) != staging
            )
            for name in sorted(files):
                source = os.path.join(root, name)
                if os.path.abspath(source) in skipped_files:
                    continue
                relative = os.path.relpath(source, resource.directory).replace(
                    os.sep, "/"
                )
                if not _matches(relative, resource.includes):
                    continue
                if _matches(relative, resource.excludes):
                    continue

                destination = os.path.join(target, relative)
                os.makedirs(os.path.dirname(destination), exist_ok=True)
                shutil.copy2(source, destination)
                LOGGER.debug("copied %s to %s", source, destination)


def assure_staging_directory_not_empty(staging_dir: str) -> None:
    if not os.path.isdir(staging_dir) or not os.listdir(staging_dir):
        raise DeployError("Staging directory: '%s' is empty." % staging_dir)


class ArtifactHandler:
    def __init__(self, staging_dir: str, resources: Optional[List[Resource]] = None):
        self.staging_dir = staging_dir
        self.resources = resources or []

    def publish(self, target: DeployTarget) -> None:
        raise NotImplementedError


class FTPArtifactHandler(ArtifactHandler):
    def __init__(
        self,
        staging_dir: str,
        resources: Optional[List[Resource]] = None,
        uploader: Optional[FTPUploader] = None,
    ) -> None:
        super().__init__(staging_dir, resources)
        self.uploader = uploader or FTPUploader()

    def publish(self, target: DeployTarget) -> None:
        if not self.resources:
            LOGGER.info(NO_RESOURCES_CONFIG)
            return

        prepare_resources(self.resources, self.staging_dir)
        assure_staging_directory_not_empty(self.staging_dir)

        profile = target.get_publishing_profile()
        self.uploader.upload_directory_with_retries(
            profile.ftp_server(),
            profile.ftp_username,
            profile.ftp_password,
            self.staging_dir,
            DEFAULT_WEBAPP_ROOT,
            DEFAULT_MAX_RETRY_TIMES,
        )
        target.post_publish()


class ZIPArtifactHandler(ArtifactHandler):
    def publish(self, target: DeployTarget) -> None:
        prepare_resources(self.resources, self.staging_dir)
        assure_staging_directory_not_empty(self.staging_dir)

        zip_file = shutil.make_archive(self.staging_dir, "zip", self.staging_dir)
        LOGGER.info("created %s", zip_file)
        target.zip_deploy(zip_file)
        target.post_publish()


class WARArtifactHandler(ArtifactHandler):
    def __init__(self, war_file: str, context_path: Optional[str] = None) -> None:
        super().__init__(os.path.dirname(os.path.abspath(war_file)))
        self.war_file = war_file
        self.context_path = context_path

    def publish(self, target: DeployTarget) -> None:
        if not os.path.isfile(self.war_file):
            raise DeployError("Failed to find the war file: '%s'" % self.war_file)
        target.war_deploy(self.war_file, self.context_path)


def get_artifact_handler(
    deploy_type: DeployType,
    staging_dir: str,
    resources: Optional[List[Resource]] = None,
    war_file: Optional[str] = None,
    context_path: Optional[str] = None,
) -> ArtifactHandler:
    if deploy_type == DeployType.ftp:
        return FTPArtifactHandler(staging_dir, resources)
    if deploy_type == DeployType.zip:
        return ZIPArtifactHandler(staging_dir, resources)
    if not war_file:
        raise DeployError("war deployment requires a war file")
    return WARArtifactHandler(war_file, context_path)
