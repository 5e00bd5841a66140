"""
Cloud upload for ggif.

Copies a finished artifact to a bucket through the vendor CLI
(``gsutil`` for Google Cloud Storage, ``aws`` for S3) with a public-read
ACL, then prints the public URL and puts it on the clipboard.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from ggif.config import STORE_GCS, STORE_S3, Config
from ggif.platform_utils import copy_to_clipboard
from ggif.runner import CommandRunner

logger = logging.getLogger(__name__)

_URL_TEMPLATES = {
    STORE_GCS: "https://storage.googleapis.com/{bucket}/{key}",
    STORE_S3: "https://{bucket}.s3.amazonaws.com/{key}",
}


def public_url(store: str, bucket: str, object_key: str) -> str:
    """Return the public URL of *object_key* in *bucket*."""
    try:
        template = _URL_TEMPLATES[store]
    except KeyError:
        raise ValueError(f"Unknown store: {store!r}") from None
    return template.format(bucket=bucket, key=object_key)


@dataclass(frozen=True)
class UploadResult:
    """Outcome of uploading one artifact to one bucket."""
    store: str
    bucket: str
    object_key: str
    public_url: str
    ok: bool


class Uploader:
    """
    Uploads artifacts with the vendor command-line tools.

    Parameters
    ----------
    config : Config
        Supplies the ``gsutil`` and ``aws`` executables.
    runner : CommandRunner
        Runs the copy commands.
    clipboard : callable, optional
        Called with the public URL; returns True on success.
    log : logging.Logger, optional
        Logger to report uploads to.
    """

    def __init__(
        self,
        config: Config,
        runner: CommandRunner,
        clipboard: Callable[[str], bool] = copy_to_clipboard,
        log: logging.Logger | None = None,
    ):
        self._config = config
        self._runner = runner
        self._clipboard = clipboard
        self._log = log or logger

    def copy_command(
        self, store: str, bucket: str, artifact_path: Path, object_key: str
    ) -> list[str]:
        """Return the argv that copies *artifact_path* to *bucket*."""
        if store == STORE_GCS:
            return [
                self._config.gsutil, "cp", "-a", "public-read",
                str(artifact_path), f"gs://{bucket}/{object_key}",
            ]
        if store == STORE_S3:
            return [
                self._config.aws, "s3", "cp",
                str(artifact_path), f"s3://{bucket}/{object_key}",
                "--acl", "public-read",
            ]
        raise ValueError(f"Unknown store: {store!r}")

    def upload(
        self, store: str, bucket: str, artifact_path: Path, object_key: str
    ) -> UploadResult | None:
        """
        Copy *artifact_path* to *bucket* and share its URL.

        Does nothing and returns None when *bucket* is empty.  A failed
        copy is logged; the URL is still printed so the caller's remaining
        uploads and output are unaffected.
        """
        if not bucket:
            return None

        self._log.info("Uploading %s to %s bucket %s", artifact_path, store, bucket)
        result = self._runner.run(
            *self.copy_command(store, bucket, artifact_path, object_key)
        )
        if not result.ok:
            self._log.error("Upload of %s to %s failed", artifact_path, bucket)

        url = public_url(store, bucket, object_key)
        print(url)
        if not self._clipboard(url):
            self._log.warning("URL was not copied to the clipboard: %s", url)
        return UploadResult(
            store=store,
            bucket=bucket,
            object_key=object_key,
            public_url=url,
            ok=result.ok,
        )
