"""Credential selection and Workload Identity Federation token exchange."""
import logging
import os
from dataclasses import dataclass
from typing import Optional

import requests

from .errors import AuthenticationError
from .models import ServiceAccountKey
from .parsing import parse_service_account_key

logger = logging.getLogger(__name__)

TOKEN_EXCHANGE_URL = "https://auth.yandex.cloud/oauth/token"
REQUEST_TIMEOUT = 30


@dataclass
class Credentials:
    """Either an IAM token or a service account authorized key."""
    iam_token: Optional[str] = None
    service_account_key: Optional[ServiceAccountKey] = None

    def iam_token_for_storage(self) -> str:
        """
        IAM token for Object Storage requests, issued from the key if needed.

        Raises:
            AuthenticationError: If neither a token nor a key is set
        """
        if self.iam_token:
            return self.iam_token
        if self.service_account_key is None:
            raise AuthenticationError("No credentials for Object Storage upload")
        from yandexcloud.auth import get_auth_token
        return get_auth_token(service_account_key=self.service_account_key.as_sdk_key())


def get_github_id_token(audience: Optional[str] = None) -> Optional[str]:
    """
    Request a GitHub Actions OIDC ID token for the current job.

    Returns:
        The token, or None when the job has no `id-token: write` permission
    """
    url = os.getenv("ACTIONS_ID_TOKEN_REQUEST_URL")
    request_token = os.getenv("ACTIONS_ID_TOKEN_REQUEST_TOKEN")
    if not url or not request_token:
        return None

    params = {"audience": audience} if audience else None
    response = requests.get(
        url,
        params=params,
        headers={"Authorization": f"Bearer {request_token}"},
        timeout=REQUEST_TIMEOUT,
    )
    response.raise_for_status()
    return response.json().get("value")


def exchange_token(token: str, service_account_id: str) -> str:
    """
    Exchange a GitHub OIDC token for a Yandex Cloud IAM token (RFC 8693).

    Args:
        token: GitHub OIDC ID token
        service_account_id: Service account federated with the repository

    Returns:
        IAM access token of the service account

    Raises:
        AuthenticationError: If the exchange is rejected
    """
    logger.info(f"Exchanging token for service account {service_account_id}")
    response = requests.post(
        TOKEN_EXCHANGE_URL,
        data={
            "grant_type": "urn:ietf:params:oauth:grant-type:token-exchange",
            "requested_token_type": "urn:ietf:params:oauth:token-type:access_token",
            "audience": service_account_id,
            "subject_token": token,
            "subject_token_type": "urn:ietf:params:oauth:token-type:id_token",
        },
        timeout=REQUEST_TIMEOUT,
    )
    if response.status_code != 200:
        raise AuthenticationError(f"Failed to exchange token: {response.status_code} {response.reason}")

    data = response.json()
    if not data.get("access_token"):
        raise AuthenticationError(
            f"Failed to exchange token: {data.get('error')} {data.get('error_description')}"
        )
    logger.info("Token exchanged successfully")
    return data["access_token"]


def select_credentials(
    sa_json_credentials: str = "",
    iam_token: str = "",
    sa_id: str = "",
    fallback: Optional[Credentials] = None,
) -> Credentials:
    """
    Pick credentials for the run.

    Priority order:
    1. Service account key JSON
    2. IAM token
    3. Workload Identity Federation (GitHub OIDC token exchange)
    4. Credentials from the config file

    Raises:
        AuthenticationError: If no method yields credentials
        InputValidationError: If the service account key is malformed
    """
    if sa_json_credentials:
        key = parse_service_account_key(sa_json_credentials)
        logger.info("Parsed Service account JSON")
        return Credentials(service_account_key=key)
    if iam_token:
        logger.info("Using IAM token")
        return Credentials(iam_token=iam_token)
    if sa_id:
        github_token = get_github_id_token()
        if not github_token:
            raise AuthenticationError("No credentials provided")
        return Credentials(iam_token=exchange_token(github_token, sa_id))
    if fallback is not None:
        logger.info("Using credentials from config file")
        return fallback
    raise AuthenticationError("No credentials")
