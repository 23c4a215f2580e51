#!/usr/bin/env python
#
# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import ftplib  # nosec
import logging
import os
import posixpath
from typing import Optional, Tuple

from tenacity import RetryCallState, RetryError, Retrying
from tenacity.retry import retry_if_result
from tenacity.stop import stop_after_attempt

from .errors import UploadError

FTP_TIMEOUT = 60.0

LOGGER = logging.getLogger("azdeploy.ftp")


def before_sleep(retry_state: RetryCallState) -> None:
    LOGGER.warning(
        "upload attempt %d of %s failed, retrying ...",
        retry_state.attempt_number,
        retry_state.kwargs.get("target_dir", "directory"),
    )


def _is_failure(result: Optional[bool]) -> bool:
    return result is False


def split_server(server: str) -> Tuple[str, int]:
    host, _, port = server.partition(":")
    return (host, int(port) if port else ftplib.FTP_PORT)


class FTPUploader:
    def get_ftp_client(self) -> ftplib.FTP:
        return ftplib.FTP(timeout=FTP_TIMEOUT)  # nosec

    def upload_directory_with_retries(
        self,
        server: str,
        username: str,
        password: str,
        source_dir: str,
        target_dir: str,
        max_retries: int,
    ) -> None:
        if max_retries < 1:
            raise UploadError(
                "Failed to upload files to FTP server, invalid retry count: %d"
                % max_retries,
                0,
            )

        retrying = Retrying(
            stop=stop_after_attempt(max_retries),
            retry=retry_if_result(_is_failure),
            before_sleep=before_sleep,
        )
        try:
            retrying(
                self.upload_directory,
                server=server,
                username=username,
                password=password,
                source_dir=source_dir,
                target_dir=target_dir,
            )
        except RetryError:
            raise UploadError(
                "Failed to upload files to FTP server after %d retries..."
                % max_retries,
                max_retries,
            )

    def upload_directory(
        self,
        server: str,
        username: str,
        password: str,
        source_dir: str,
        target_dir: str,
    ) -> bool:
        """Upload a local directory tree, returning False on FTP errors"""
        LOGGER.info(
            "uploading directory %s to ftp://%s%s", source_dir, server, target_dir
        )
        host, port = split_server(server)
        client = self.get_ftp_client()
        try:
            client.connect(host, port)
            client.login(username, password)
            client.voidcmd("TYPE I")
            client.set_pasv(True)
            self.make_directory(client, target_dir)
            self.upload_tree(client, source_dir, target_dir)
        except ftplib.all_errors as err:
            LOGGER.error("failed to upload %s: %s", source_dir, err)
            return False
        finally:
            self.disconnect(client)

        LOGGER.info("successfully uploaded %s", source_dir)
        return True

    def upload_tree(self, client: ftplib.FTP, source_dir: str, target_dir: str) -> None:
        for entry in sorted(os.listdir(source_dir)):
            local_path = os.path.join(source_dir, entry)
            remote_path = posixpath.join(target_dir, entry)
            if os.path.isdir(local_path):
                self.make_directory(client, remote_path)
                self.upload_tree(client, local_path, remote_path)
            else:
                LOGGER.debug("uploading %s", remote_path)
                with open(local_path, "rb") as handle:
                    client.storbinary("STOR %s" % remote_path, handle)

    def make_directory(self, client: ftplib.FTP, path: str) -> None:
        try:
            client.mkd(path)
        except ftplib.error_perm as err:
            # most servers answer 550 when the directory already exists
            LOGGER.debug("unable to create %s: %s", path, err)

    def disconnect(self, client: ftplib.FTP) -> None:
        try:
            client.quit()
        except ftplib.all_errors as err:
            LOGGER.debug("ftp quit failed, closing connection: %s", err)
            client.close()
