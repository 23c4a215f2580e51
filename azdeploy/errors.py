#!/usr/bin/env python
#
# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

from typing import List, Optional, Tuple


class AzDeployError(Exception):
    pass


class AuthenticationError(AzDeployError):
    pass


class CredentialUnavailable(AuthenticationError):
    """A credential source is not set up on this machine"""


class UnsupportedAuthType(AuthenticationError):
    pass


class LoginFailureError(AuthenticationError):
    def __init__(
        self, message: str, failures: Optional[List[Tuple[str, str]]] = None
    ) -> None:
        super(LoginFailureError, self).__init__(message)
        self.message = message
        self.failures = failures or []


class UploadError(AzDeployError):
    def __init__(self, message: str, attempts: int) -> None:
        super(UploadError, self).__init__(message)
        self.message = message
        self.attempts = attempts


class DeployError(AzDeployError):
    pass
