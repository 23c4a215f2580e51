#!/usr/bin/env python
#
# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import logging
from typing import Dict, List, Optional, Type

from ..enums import AuthType
from ..errors import LoginFailureError, UnsupportedAuthType
from ..models import AuthConfiguration
from .environment import ENVIRONMENTS, AzureEnvironment, delete_azure_secret_file
from .retriever import (
    AzureCredentialWrapper,
    ChainedCredentialRetriever,
    CredentialRetriever,
)
from .retrievers import RETRIEVERS

LOGGER = logging.getLogger("azdeploy.auth")


class AzureAuthManager:
    def __init__(
        self, retrievers: Optional[Dict[AuthType, Type[CredentialRetriever]]] = None
    ) -> None:
        self.retrievers = RETRIEVERS if retrievers is None else retrievers

    def auth_types(self, auth_type: AuthType) -> List[AuthType]:
        if auth_type == AuthType.auto:
            return [x for x in AuthType.priority() if x in self.retrievers]
        if auth_type not in self.retrievers:
            raise UnsupportedAuthType("authType '%s' not supported." % auth_type.value)
        return [auth_type]

    def build_chain(
        self, configuration: AuthConfiguration, environment: AzureEnvironment
    ) -> ChainedCredentialRetriever:
        chain = ChainedCredentialRetriever()
        for auth_type in self.auth_types(configuration.type):
            chain.add_retriever(self.retrievers[auth_type](environment, configuration))
        return chain

    def get_credential(
        self, configuration: Optional[AuthConfiguration] = None
    ) -> AzureCredentialWrapper:
        configuration = configuration or AuthConfiguration()
        environment = ENVIRONMENTS[configuration.environment]
        chain = self.build_chain(configuration, environment)

        LOGGER.debug(
            "resolving credentials with authType '%s' in %s",
            configuration.type.value,
            environment.name.value,
        )
        try:
            return chain.retrieve()
        except LoginFailureError as err:
            raise LoginFailureError(
                "Cannot get credentials from authType '%s' due to error: %s"
                % (configuration.type.value, err.message),
                err.failures,
            )

    def logout(self) -> bool:
        return delete_azure_secret_file()
