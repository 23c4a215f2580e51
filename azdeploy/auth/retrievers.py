#!/usr/bin/env python
#
# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

from typing import Dict, Type

from azure.core.exceptions import ClientAuthenticationError
from azure.identity import (
    AzureCliCredential,
    CertificateCredential,
    ClientSecretCredential,
    InteractiveBrowserCredential,
    ManagedIdentityCredential,
    SharedTokenCacheCredential,
    VisualStudioCodeCredential,
)

from ..enums import AuthType
from ..errors import AuthenticationError, CredentialUnavailable
from .azure_cli import CLI_NOT_LOGGED_IN, check_cli_version, get_default_subscription
from .environment import (
    ENVIRONMENTS,
    PUBLIC_CLIENT_ID,
    exists_azure_secret_file,
    get_azure_secret_file,
)
from .retriever import AzureCredentialWrapper, CredentialRetriever
from .token_cache import (
    MsalTokenCredential,
    TokenCacheFile,
    device_code_login,
    public_application,
)


class ServicePrincipalRetriever(CredentialRetriever):
    name = AuthType.service_principal.value

    def _retrieve(self) -> AzureCredentialWrapper:
        config = self.configuration
        if not config.client or not config.tenant:
            raise CredentialUnavailable("client and tenant are required")

        if config.key:
            credential = ClientSecretCredential(
                config.tenant,
                config.client,
                config.key,
                authority=self.environment.authority_host,
            )
        elif config.certificate:
            credential = CertificateCredential(
                config.tenant,
                config.client,
                certificate_path=config.certificate,
                password=config.certificate_password,
                authority=self.environment.authority_host,
            )
        else:
            raise CredentialUnavailable("either key or certificate is required")

        return AzureCredentialWrapper(
            credential,
            AuthType.service_principal,
            self.environment,
            tenant_id=config.tenant,
        )


class ManagedIdentityRetriever(CredentialRetriever):
    name = AuthType.managed_identity.value

    def _retrieve(self) -> AzureCredentialWrapper:
        # a client id without a secret or certificate selects a user assigned identity
        client_id = None
        if not self.configuration.key and not self.configuration.certificate:
            client_id = self.configuration.client
        return AzureCredentialWrapper(
            ManagedIdentityCredential(client_id=client_id),
            AuthType.managed_identity,
            self.environment,
        )


class AzureCliRetriever(CredentialRetriever):
    name = AuthType.azure_cli.value

    def _retrieve(self) -> AzureCredentialWrapper:
        try:
            if not check_cli_version():
                raise CredentialUnavailable(
                    "unable to determine the Azure CLI version"
                )
            subscription = get_default_subscription()
        except CredentialUnavailable:
            raise
        except AuthenticationError as err:
            raise CredentialUnavailable(str(err))

        if subscription is None:
            raise CredentialUnavailable(CLI_NOT_LOGGED_IN)

        return AzureCredentialWrapper(
            AzureCliCredential(tenant_id=subscription.tenant_id),
            AuthType.azure_cli,
            ENVIRONMENTS[subscription.environment],
            tenant_id=subscription.tenant_id,
            default_subscription_id=subscription.id,
            email=subscription.email,
        )


class VsCodeRetriever(CredentialRetriever):
    name = AuthType.vscode.value

    def _retrieve(self) -> AzureCredentialWrapper:
        return AzureCredentialWrapper(
            VisualStudioCodeCredential(tenant_id=self.configuration.tenant),
            AuthType.vscode,
            self.environment,
            tenant_id=self.configuration.tenant,
        )


class VisualStudioRetriever(CredentialRetriever):
    name = AuthType.visual_studio.value

    def _retrieve(self) -> AzureCredentialWrapper:
        return AzureCredentialWrapper(
            SharedTokenCacheCredential(
                tenant_id=self.configuration.tenant,
                authority=self.environment.authority_host,
            ),
            AuthType.visual_studio,
            self.environment,
            tenant_id=self.configuration.tenant,
        )


class CachedTokenRetriever(CredentialRetriever):
    """Credentials left in the secret file by an earlier device code login"""

    name = AuthType.cached_token.value

    def _retrieve(self) -> AzureCredentialWrapper:
        if not exists_azure_secret_file():
            raise CredentialUnavailable(
                "no cached token in %s" % get_azure_secret_file()
            )

        cache_file = TokenCacheFile(get_azure_secret_file())
        cache = cache_file.load()
        app = public_application(self.environment, cache, self.configuration.tenant)
        accounts = app.get_accounts()
        if not accounts:
            raise CredentialUnavailable(
                "no accounts in %s" % get_azure_secret_file()
            )

        account = accounts[0]
        return AzureCredentialWrapper(
            MsalTokenCredential(app, account, cache_file),
            AuthType.cached_token,
            self.environment,
            tenant_id=account.get("realm"),
            email=account.get("username"),
        )


class OAuth2Retriever(CredentialRetriever):
    name = AuthType.oauth2.value

    def _retrieve(self) -> AzureCredentialWrapper:
        return AzureCredentialWrapper(
            InteractiveBrowserCredential(
                client_id=PUBLIC_CLIENT_ID,
                tenant_id=self.configuration.tenant,
                authority=self.environment.authority_host,
            ),
            AuthType.oauth2,
            self.environment,
            tenant_id=self.configuration.tenant,
        )


class DeviceCodeRetriever(CredentialRetriever):
    name = AuthType.device_code.value

    def _retrieve(self) -> AzureCredentialWrapper:
        cache_file = TokenCacheFile(get_azure_secret_file())
        cache = cache_file.load()
        app = public_application(self.environment, cache, self.configuration.tenant)

        result = device_code_login(app, self.environment.management_scope)
        cache_file.save()

        claims = result.get("id_token_claims") or {}
        username = claims.get("preferred_username")
        accounts = app.get_accounts(username=username) or app.get_accounts()
        if not accounts:
            raise ClientAuthenticationError(
                message="device code login did not produce an account"
            )

        account = accounts[0]
        return AzureCredentialWrapper(
            MsalTokenCredential(app, account, cache_file),
            AuthType.device_code,
            self.environment,
            tenant_id=claims.get("tid") or account.get("realm"),
            email=account.get("username"),
        )


RETRIEVERS: Dict[AuthType, Type[CredentialRetriever]] = {
    AuthType.service_principal: ServicePrincipalRetriever,
    AuthType.managed_identity: ManagedIdentityRetriever,
    AuthType.azure_cli: AzureCliRetriever,
    AuthType.vscode: VsCodeRetriever,
    AuthType.visual_studio: VisualStudioRetriever,
    AuthType.cached_token: CachedTokenRetriever,
    AuthType.oauth2: OAuth2Retriever,
    AuthType.device_code: DeviceCodeRetriever,
}
