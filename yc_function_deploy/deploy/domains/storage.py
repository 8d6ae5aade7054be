"""Object Storage upload of function packages."""
import hashlib
import logging
import os
from typing import Optional

import requests

from .errors import DeployError

logger = logging.getLogger(__name__)

STORAGE_ENDPOINT = "https://storage.yandexcloud.net"
UPLOAD_TIMEOUT = 300


def package_object_name(function_id: str, sha: Optional[str] = None) -> str:
    """
    Name of the package object: {function_id}/{GITHUB_SHA}.zip.

    Raises:
        DeployError: If no commit SHA is given and GITHUB_SHA is not set
    """
    sha = sha or os.getenv("GITHUB_SHA")
    if not sha:
        raise DeployError("Missing GITHUB_SHA")
    return f"{function_id}/{sha}.zip"


def sha256_hex(contents: bytes) -> str:
    """Hex SHA-256 digest of a package, as the Functions API expects it."""
    return hashlib.sha256(contents).hexdigest()


def upload_package(bucket: str, object_name: str, contents: bytes, iam_token: str) -> None:
    """
    Upload an archive to a bucket, authenticating with an IAM token.

    Raises:
        requests.HTTPError: If Object Storage rejects the upload
    """
    url = f"{STORAGE_ENDPOINT}/{bucket}/{object_name}"
    logger.info(f'Upload to bucket: "{bucket}/{object_name}"')
    response = requests.put(
        url,
        data=contents,
        headers={"X-YaCloud-SubjectToken": iam_token},
        timeout=UPLOAD_TIMEOUT,
    )
    response.raise_for_status()
