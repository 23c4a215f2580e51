#!/usr/bin/env python
#
# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import json
import logging
import os
from typing import Optional

from pydantic import BaseModel

from .models import AuthConfiguration

VIRTUAL_ENV = os.environ.get("VIRTUAL_ENV")
HOME_PATH = VIRTUAL_ENV if VIRTUAL_ENV else "~"
AZDEPLOY_CACHE = os.path.join(".cache", "azdeploy")
DEFAULT_CONFIG_PATH = os.path.join(HOME_PATH, AZDEPLOY_CACHE, "config.json")

LOGGER = logging.getLogger("azdeploy")


class ToolConfig(BaseModel):
    auth: AuthConfiguration = AuthConfiguration()
    subscription_id: Optional[str] = None

    def masked(self) -> "ToolConfig":
        data = self.copy(deep=True)
        for field in ["key", "certificate_password"]:
            if getattr(data.auth, field) is not None:
                # replace existing secrets with "***" for user display
                setattr(data.auth, field, "***")  # nosec
        return data


class ConfigStore:
    def __init__(self, config_path: Optional[str] = None) -> None:
        self.config_path = os.path.expanduser(config_path or DEFAULT_CONFIG_PATH)
        self.config = ToolConfig()
        self.load_config()

    def load_config(self) -> None:
        if os.path.exists(self.config_path):
            with open(self.config_path, "r") as handle:
                data = json.load(handle)
            self.config = ToolConfig.parse_obj(data)

    def save_config(self) -> None:
        LOGGER.debug("saving config to %s", self.config_path)
        os.makedirs(os.path.dirname(self.config_path), exist_ok=True)
        with open(self.config_path, "w") as handle:
            handle.write(self.config.json(indent=4, sort_keys=True, exclude_none=True))
