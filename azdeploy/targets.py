#!/usr/bin/env python
#
# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import logging
from typing import Any, Optional
from urllib.parse import quote
from xml.etree import ElementTree  # nosec

import requests
from azure.mgmt.web.models import CsmPublishingProfileOptions
from tenacity import RetryCallState, retry
from tenacity.retry import retry_if_exception_type
from tenacity.stop import stop_after_attempt
from tenacity.wait import wait_random

from .errors import DeployError
from .models import PublishingProfile

REQUEST_CONNECT_TIMEOUT = 30.0
REQUEST_READ_TIMEOUT = 600.0
KUDU_RETRIES = 5

# 409 is returned while another deployment is in progress
RETRY_CODES = [409, 429, 500, 502, 503, 504]

LOGGER = logging.getLogger("azdeploy.deploy")


class KuduRetryableError(DeployError):
    def __init__(self, message: str, status_code: int) -> None:
        super(KuduRetryableError, self).__init__(message)
        self.status_code = status_code


def before_sleep(retry_state: RetryCallState) -> None:
    name = retry_state.fn.__name__ if retry_state.fn else "kudu request"

    why: Optional[BaseException] = None
    if retry_state.outcome is not None:
        why = retry_state.outcome.exception()
    if why:
        LOGGER.warning("%s failed with %s, retrying ...", name, repr(why))
    else:
        LOGGER.warning("%s failed, retrying ...", name)


def strip_ftp_scheme(url: str) -> str:
    for scheme in ["ftps://", "ftp://"]:
        if url.lower().startswith(scheme):
            return url[len(scheme) :]
    return url


def parse_publishing_profile(xml: str) -> PublishingProfile:
    root = ElementTree.fromstring(xml)  # nosec
    for profile in root.iter("publishProfile"):
        if (profile.get("publishMethod") or "").upper() != "FTP":
            continue
        return PublishingProfile(
            ftp_url=strip_ftp_scheme(profile.get("publishUrl") or ""),
            ftp_username=profile.get("userName") or "",
            ftp_password=profile.get("userPWD") or "",
        )
    raise DeployError("publishing profile does not contain FTP settings")


def scm_host(default_host_name: str) -> str:
    """Kudu host for a site, `<site>.scm.<domain>`"""
    name, _, domain = default_host_name.partition(".")
    return "%s.scm.%s" % (name, domain)


class KuduClient:
    def __init__(
        self,
        host: str,
        username: str,
        password: str,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = "https://%s" % host
        self.auth = (username, password)
        self.session = session or requests.Session()

    @retry(
        stop=stop_after_attempt(KUDU_RETRIES),
        wait=wait_random(min=1, max=3),
        retry=retry_if_exception_type(
            (KuduRetryableError, requests.exceptions.ConnectionError)
        ),
        before_sleep=before_sleep,
        reraise=True,
    )
    def upload(self, path: str, file_path: str) -> requests.Response:
        url = self.base_url + path
        LOGGER.debug("POST %s", url)
        with open(file_path, "rb") as handle:
            response = self.session.post(
                url,
                data=handle,
                auth=self.auth,
                headers={"Content-Type": "application/octet-stream"},
                timeout=(REQUEST_CONNECT_TIMEOUT, REQUEST_READ_TIMEOUT),
            )
        if response.status_code in RETRY_CODES:
            raise KuduRetryableError(
                "%s returned %d" % (path, response.status_code), response.status_code
            )
        if not response.ok:
            raise DeployError(
                "%s failed: (%d) %s" % (path, response.status_code, response.text)
            )
        return response

    def zip_deploy(self, file_path: str) -> None:
        self._deploy("/api/zipdeploy", file_path)

    def war_deploy(self, file_path: str, context_path: Optional[str] = None) -> None:
        path = "/api/wardeploy"
        name = (context_path or "").strip("/")
        if name:
            path += "?name=%s" % quote(name, safe="")
        self._deploy(path, file_path)

    def _deploy(self, path: str, file_path: str) -> None:
        try:
            self.upload(path, file_path)
        except requests.exceptions.RequestException as err:
            raise DeployError("deployment to %s failed: %s" % (self.base_url, err))


class DeployTarget:
    """A site that artifacts can be published to"""

    type_name = "site"

    def __init__(self, app: Any, client: Any) -> None:
        self.app = app
        self.client = client
        self._profile: Optional[PublishingProfile] = None

    @property
    def resource_group(self) -> str:
        return str(self.app.resource_group)

    def get_name(self) -> str:
        return str(self.app.name)

    def get_type(self) -> str:
        return self.type_name

    def get_default_host_name(self) -> str:
        return str(self.app.default_host_name)

    def _publishing_profile_xml(self) -> Any:
        raise NotImplementedError

    def get_publishing_profile(self) -> PublishingProfile:
        if self._profile is None:
            content = b"".join(self._publishing_profile_xml())
            self._profile = parse_publishing_profile(content.decode("utf-8"))
        return self._profile

    def kudu(self) -> KuduClient:
        profile = self.get_publishing_profile()
        return KuduClient(
            scm_host(self.get_default_host_name()),
            profile.ftp_username.split("\\")[-1],
            profile.ftp_password,
        )

    def zip_deploy(self, file_path: str) -> None:
        LOGGER.info(
            "deploying %s to %s %s", file_path, self.get_type(), self.get_name()
        )
        self.kudu().zip_deploy(file_path)

    def war_deploy(self, file_path: str, context_path: Optional[str] = None) -> None:
        LOGGER.info(
            "deploying %s to %s %s", file_path, self.get_type(), self.get_name()
        )
        self.kudu().war_deploy(file_path, context_path)

    def post_publish(self) -> None:
        pass


class WebAppDeployTarget(DeployTarget):
    type_name = "web app"

    def _publishing_profile_xml(self) -> Any:
        return self.client.web_apps.list_publishing_profile_xml_with_secrets(
            self.resource_group,
            self.get_name(),
            CsmPublishingProfileOptions(format="Ftp"),
        )


class DeploymentSlotDeployTarget(DeployTarget):
    type_name = "deployment slot"

    def __init__(self, app: Any, client: Any, app_name: str, slot_name: str) -> None:
        super().__init__(app, client)
        self.app_name = app_name
        self.slot_name = slot_name

    def get_name(self) -> str:
        return self.slot_name

    def _publishing_profile_xml(self) -> Any:
        return self.client.web_apps.list_publishing_profile_xml_with_secrets_slot(
            self.resource_group,
            self.app_name,
            self.slot_name,
            CsmPublishingProfileOptions(format="Ftp"),
        )


class FunctionAppDeployTarget(WebAppDeployTarget):
    type_name = "function app"

    def post_publish(self) -> None:
        LOGGER.info("syncing triggers of function app %s", self.get_name())
        self.client.web_apps.sync_function_triggers(
            self.resource_group, self.get_name()
        )
