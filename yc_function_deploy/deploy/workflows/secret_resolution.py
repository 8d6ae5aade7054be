"""Workflow for pinning 'latest' Lockbox secret references to concrete versions."""
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List

from ..domains.errors import SecretResolutionError
from ..domains.models import (
    Failed,
    Fallback,
    LockboxSecretInfo,
    ResolutionResult,
    Resolved,
    SecretReference,
)

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 5
LIST_PAGE_SIZE = 100


def _resolve_by_id(client, secret: SecretReference) -> ResolutionResult:
    try:
        info = client.get_secret(secret.id)
    except Exception as e:
        # The ID may be a secret name; it is retried by name later
        logger.debug(f"Lockbox lookup by ID failed for {secret.id}: {e}")
        return Fallback(secret)

    if not info.current_version_id:
        return Failed(f"Secret {secret.id} has no current version")
    return Resolved(secret.pinned(info.current_version_id))


def resolve_secrets_by_id(
    client, secrets: List[SecretReference], concurrency: int = DEFAULT_CONCURRENCY
) -> List[ResolutionResult]:
    """
    Look up each secret by ID, at most `concurrency` requests in flight.

    Args:
        client: Object with get_secret(secret_id) -> LockboxSecretInfo
        secrets: References to resolve
        concurrency: Worker pool width

    Returns:
        One ResolutionResult per secret, in input order
    """
    with ThreadPoolExecutor(max_workers=concurrency) as pool:
        return list(pool.map(lambda s: _resolve_by_id(client, s), secrets))


def find_secrets_in_folder(client, folder_id: str) -> Dict[str, LockboxSecretInfo]:
    """List every secret of the folder, page by page, keyed by name."""
    by_name: Dict[str, LockboxSecretInfo] = {}
    page_token = ""
    while True:
        page, page_token = client.list_secrets(folder_id, page_size=LIST_PAGE_SIZE, page_token=page_token)
        for secret in page:
            by_name[secret.name] = secret
        if not page_token:
            return by_name


def _resolve_by_name(original: SecretReference, by_name: Dict[str, LockboxSecretInfo]) -> ResolutionResult:
    match = by_name.get(original.id)
    if match is None:
        return Failed(f"Failed to resolve secret: {original.id}")

    logger.info(f'Resolved secret "{original.id}" to ID "{match.id}"')
    if not match.current_version_id:
        return Failed(f"Secret {original.id} (found as {match.id}) has no current version")
    return Resolved(original.pinned(match.current_version_id, secret_id=match.id))


def resolve_latest_lockbox_versions(
    client,
    folder_id: str,
    secrets: List[SecretReference],
    concurrency: int = DEFAULT_CONCURRENCY,
) -> List[SecretReference]:
    """
    Replace 'latest' version references with the current version IDs.

    Each 'latest' reference is first looked up by ID. References whose ID
    lookup fails are then matched by name against a single listing of the
    folder secrets; the ID of a secret found that way is rewritten too.

    Args:
        client: Lockbox client (get_secret, list_secrets)
        folder_id: Folder searched when falling back to names
        secrets: Parsed secret references
        concurrency: Width of the ID lookup worker pool

    Returns:
        The input list with 'latest' entries pinned, in the same order

    Raises:
        SecretResolutionError: If any 'latest' reference stays unresolved
    """
    latest_positions = [i for i, s in enumerate(secrets) if s.is_latest]
    if not latest_positions:
        return list(secrets)

    results = resolve_secrets_by_id(client, [secrets[i] for i in latest_positions], concurrency)

    fallbacks = [i for i, r in enumerate(results) if isinstance(r, Fallback)]
    if fallbacks:
        logger.info(
            f"Failed to resolve {len(fallbacks)} secrets by ID. "
            f"Trying to find by name in folder {folder_id}"
        )
        by_name = find_secrets_in_folder(client, folder_id)
        for i in fallbacks:
            results[i] = _resolve_by_name(results[i].original, by_name)

    errors = [r.message for r in results if isinstance(r, Failed)]
    if errors:
        raise SecretResolutionError(errors)

    resolved = list(secrets)
    for position, result in zip(latest_positions, results):
        resolved[position] = result.secret
    return resolved
