#!/usr/bin/env python
#
# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import contextlib
import logging
import os
import time
from typing import Any, Dict, Generator, List, Optional

import msal
from azure.core.credentials import AccessToken
from azure.core.exceptions import ClientAuthenticationError

from .environment import PUBLIC_CLIENT_ID, AzureEnvironment, base_url

_ACCESSTOKENCACHE_UMASK = 0o077

# ANSI escapes used to make the device code stand out in the terminal
HIGHLIGHT_START = "\033[1;33m"
HIGHLIGHT_END = "\033[0m"

LOGGER = logging.getLogger("azdeploy.auth")


@contextlib.contextmanager
def _temporary_umask(new_umask: int) -> Generator[None, None, None]:
    prev_umask = None
    try:
        prev_umask = os.umask(new_umask)
        yield
    finally:
        if prev_umask is not None:
            os.umask(prev_umask)


def check_msal_error(value: Dict[str, Any], expected: List[str]) -> None:
    if "error" in value:
        if "error_description" in value:
            raise ClientAuthenticationError(
                message="error: %s\n%s" % (value["error"], value["error_description"])
            )

        raise ClientAuthenticationError(message="error: %s" % (value["error"]))
    for entry in expected:
        if entry not in value:
            raise ClientAuthenticationError(
                message="login missing value: %s" % entry
            )


class TokenCacheFile:
    """MSAL token cache persisted to a user-only readable file"""

    def __init__(self, path: str) -> None:
        self.path = os.path.expanduser(path)
        self.cache: Optional[msal.SerializableTokenCache] = None

    def load(self) -> msal.SerializableTokenCache:
        try:
            dir_name = os.path.dirname(self.path)
            with _temporary_umask(_ACCESSTOKENCACHE_UMASK):
                os.makedirs(dir_name)
        except FileExistsError:
            pass

        self.cache = msal.SerializableTokenCache()
        if os.path.exists(self.path):
            with open(self.path, "r") as handle:
                data = handle.read()
            if data.strip():
                self.cache.deserialize(data)
        return self.cache

    def save(self) -> None:
        if self.cache is None:
            return

        with _temporary_umask(_ACCESSTOKENCACHE_UMASK):
            with open(self.path, "w") as handle:
                handle.write(self.cache.serialize())

    def delete(self) -> bool:
        self.cache = None
        if os.path.exists(self.path):
            os.unlink(self.path)
            return True
        return False


def public_application(
    environment: AzureEnvironment,
    cache: msal.SerializableTokenCache,
    tenant_id: Optional[str] = None,
) -> msal.PublicClientApplication:
    if tenant_id:
        authority = environment.active_directory_endpoint + tenant_id
    else:
        authority = base_url(environment)
    return msal.PublicClientApplication(
        PUBLIC_CLIENT_ID, authority=authority, token_cache=cache
    )


def highlight_user_code(message: str, user_code: str) -> str:
    return message.replace(user_code, HIGHLIGHT_START + user_code + HIGHLIGHT_END)


def device_code_login(
    app: msal.PublicClientApplication, scope: str
) -> Dict[str, Any]:
    flow = app.initiate_device_flow(scopes=[scope])
    check_msal_error(flow, ["user_code", "message"])
    print(highlight_user_code(flow["message"], flow["user_code"]), flush=True)

    result = app.acquire_token_by_device_flow(flow)
    check_msal_error(result, ["access_token"])
    LOGGER.info("device code authentication succeeded")
    return result


class MsalTokenCredential:
    """azure-core TokenCredential serving tokens silently from an MSAL cache"""

    def __init__(
        self,
        app: msal.PublicClientApplication,
        account: Dict[str, Any],
        cache_file: Optional[TokenCacheFile] = None,
    ) -> None:
        self.app = app
        self.account = account
        self.cache_file = cache_file

    @property
    def username(self) -> Optional[str]:
        return self.account.get("username")

    def get_token(self, *scopes: str, **kwargs: Any) -> AccessToken:
        result = self.app.acquire_token_silent(list(scopes), account=self.account)
        if not result:
            raise ClientAuthenticationError(
                message="no cached token for %s, please login again" % self.username
            )
        check_msal_error(result, ["access_token"])
        self.save_refreshed_cache()
        expires_on = int(time.time()) + int(result.get("expires_in", 0))
        return AccessToken(result["access_token"], expires_on)

    def save_refreshed_cache(self) -> None:
        if self.cache_file is None or self.cache_file.cache is None:
            return
        if self.cache_file.cache.has_state_changed:
            LOGGER.debug("saving refreshed tokens to %s", self.cache_file.path)
            self.cache_file.save()
