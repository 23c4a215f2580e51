#!/usr/bin/env python
#
# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

from enum import Enum
from typing import List, Optional


class AuthType(Enum):
    auto = "auto"
    service_principal = "service_principal"
    managed_identity = "managed_identity"
    azure_cli = "azure_cli"
    vscode = "vscode"
    visual_studio = "visual_studio"
    cached_token = "cached_token"
    oauth2 = "oauth2"
    device_code = "device_code"

    @classmethod
    def parse(cls, value: Optional[str]) -> "AuthType":
        if value is None or not value.strip():
            return cls.auto
        normalized = value.strip().lower()
        for entry in cls:
            if entry.value == normalized:
                return entry
        raise ValueError(
            "Invalid auth type '%s', supported values are: %s."
            % (value, ",".join(x.value for x in cls))
        )

    @classmethod
    def priority(cls) -> List["AuthType"]:
        """order in which sources are tried for the 'auto' auth type"""
        return [
            cls.service_principal,
            cls.managed_identity,
            cls.azure_cli,
            cls.vscode,
            cls.visual_studio,
            cls.cached_token,
            cls.oauth2,
            cls.device_code,
        ]


class CloudName(Enum):
    azure = "azure"
    azure_china = "azure_china"
    azure_germany = "azure_germany"
    azure_us_government = "azure_us_government"

    @classmethod
    def parse(cls, value: Optional[str]) -> "CloudName":
        """unknown or blank names fall back to the public cloud"""
        if value is None:
            return cls.azure
        normalized = value.strip().lower()
        for entry in cls:
            if entry.value == normalized:
                return entry
        return cls.azure


class OS(Enum):
    windows = "windows"
    linux = "linux"
    docker = "docker"


class DeployType(Enum):
    ftp = "ftp"
    zip = "zip"
    war = "war"


class ConfigurationSource(Enum):
    new = "new"
    parent = "parent"
    # any other value names an existing slot to copy from
    others = "others"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ConfigurationSource":
        if value is None or not value.strip():
            return cls.parent
        normalized = value.strip().lower()
        if normalized == cls.new.value:
            return cls.new
        if normalized == cls.parent.value:
            return cls.parent
        return cls.others
