#!/usr/bin/env python
#
# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import logging
from typing import Any, List, NamedTuple, Optional

from azure.core.credentials import TokenCredential
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import CredentialUnavailableError
from azure.mgmt.resource import SubscriptionClient

from ..enums import AuthType
from ..errors import AuthenticationError, CredentialUnavailable, LoginFailureError
from ..models import AuthConfiguration, CredentialInfo, SubscriptionInfo
from .environment import AzureEnvironment

LOGGER = logging.getLogger("azdeploy.auth")

EXPECTED_ERRORS = (
    CredentialUnavailableError,
    ClientAuthenticationError,
    CredentialUnavailable,
)


class AzureCredentialWrapper:
    """A usable credential and what is known about where it came from"""

    def __init__(
        self,
        credential: TokenCredential,
        auth_type: AuthType,
        environment: AzureEnvironment,
        tenant_id: Optional[str] = None,
        default_subscription_id: Optional[str] = None,
        email: Optional[str] = None,
    ) -> None:
        self.credential = credential
        self.auth_type = auth_type
        self.environment = environment
        self.tenant_id = tenant_id
        self.default_subscription_id = default_subscription_id
        self.email = email

    def management_client_args(self) -> Any:
        return {
            "base_url": self.environment.management_endpoint,
            "credential_scopes": [self.environment.management_scope],
        }

    def list_subscriptions(self) -> List[SubscriptionInfo]:
        client = SubscriptionClient(self.credential, **self.management_client_args())
        return [
            SubscriptionInfo(
                id=x.subscription_id,
                name=x.display_name,
                tenant_id=x.tenant_id,
                email=self.email,
                selected=x.subscription_id == self.default_subscription_id,
                environment=self.environment.name,
            )
            for x in client.subscriptions.list()
            if x.state is None or str(x.state).lower().endswith("enabled")
        ]

    def list_subscription_ids(self) -> List[str]:
        return [x.id for x in self.list_subscriptions()]

    def resolve_subscription(self, configured: Optional[str] = None) -> str:
        if configured:
            return configured
        if self.default_subscription_id:
            return self.default_subscription_id

        visible = self.list_subscription_ids()
        if len(visible) == 1:
            return visible[0]
        if not visible:
            raise AuthenticationError("no subscriptions are visible to the credential")
        raise AuthenticationError(
            "multiple subscriptions are visible (%s), please specify one"
            % ", ".join(visible)
        )

    def info(self, subscription_id: Optional[str] = None) -> CredentialInfo:
        return CredentialInfo(
            auth_type=self.auth_type,
            environment=self.environment.name,
            tenant_id=self.tenant_id,
            subscription_id=subscription_id or self.default_subscription_id,
            email=self.email,
        )


class RetrieveResult(NamedTuple):
    credential: Optional[AzureCredentialWrapper] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.credential is not None


class CredentialRetriever:
    """Attempt to produce a credential from a single source"""

    name = "base"

    def __init__(
        self,
        environment: AzureEnvironment,
        configuration: Optional[AuthConfiguration] = None,
    ) -> None:
        self.environment = environment
        self.configuration = configuration or AuthConfiguration()
        self.logger = LOGGER

    def _retrieve(self) -> AzureCredentialWrapper:
        raise NotImplementedError

    def validate(self, wrapper: AzureCredentialWrapper) -> AzureCredentialWrapper:
        # a credential is only usable once it can produce a management token
        wrapper.credential.get_token(wrapper.environment.management_scope)
        return wrapper

    def retrieve(self) -> RetrieveResult:
        try:
            wrapper = self.validate(self._retrieve())
        except EXPECTED_ERRORS as err:
            message = getattr(err, "message", None) or str(err)
            self.logger.debug("%s unavailable: %s", self.name, message)
            return RetrieveResult(error=message)
        self.logger.info("using credentials from %s", self.name)
        return RetrieveResult(credential=wrapper)


class ChainedCredentialRetriever:
    def __init__(self) -> None:
        self.retrievers: List[CredentialRetriever] = []

    def add_retriever(self, retriever: CredentialRetriever) -> None:
        self.retrievers.append(retriever)

    def retrieve(self) -> AzureCredentialWrapper:
        if not self.retrievers:
            raise LoginFailureError("no credential retrievers configured")

        failures = []
        for retriever in self.retrievers:
            result = retriever.retrieve()
            if result.credential is not None:
                return result.credential
            failures.append((retriever.name, result.error or "unknown error"))

        raise LoginFailureError(
            "; ".join("%s: %s" % (name, reason) for (name, reason) in failures),
            failures,
        )
