"""Tests for pinning 'latest' Lockbox secret versions."""
import threading
import time

import pytest

from yc_function_deploy.deploy.domains.errors import SecretResolutionError
from yc_function_deploy.deploy.domains.models import (
    Failed,
    Fallback,
    LockboxSecretInfo,
    Resolved,
    SecretReference,
)
from yc_function_deploy.deploy.workflows.secret_resolution import (
    LIST_PAGE_SIZE,
    find_secrets_in_folder,
    resolve_latest_lockbox_versions,
    resolve_secrets_by_id,
)


class SecretNotFound(Exception):
    pass


class FakeLockbox:
    """In-memory Lockbox with the client methods the resolver uses."""

    def __init__(self, secrets=(), page_size=None, delay=0.0):
        self.secrets = {s.id: s for s in secrets}
        self.page_size = page_size
        self.delay = delay
        self.get_calls = []
        self.list_calls = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def get_secret(self, secret_id):
        with self._lock:
            self.get_calls.append(secret_id)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            if secret_id not in self.secrets:
                raise SecretNotFound(secret_id)
            return self.secrets[secret_id]
        finally:
            with self._lock:
                self.in_flight -= 1

    def list_secrets(self, folder_id, page_size=100, page_token=""):
        self.list_calls.append((folder_id, page_size, page_token))
        secrets = sorted(self.secrets.values(), key=lambda s: s.id)
        size = self.page_size or page_size
        start = int(page_token or 0)
        page = secrets[start:start + size]
        next_token = str(start + size) if start + size < len(secrets) else ""
        return page, next_token


def ref(env, secret_id, version_id="latest", key="value"):
    return SecretReference(environment_variable=env, id=secret_id, version_id=version_id, key=key)


@pytest.fixture
def lockbox():
    return FakeLockbox([
        LockboxSecretInfo(id="e6q1", name="db-password", current_version_id="v1"),
        LockboxSecretInfo(id="e6q2", name="api-token", current_version_id="v2"),
        LockboxSecretInfo(id="e6q3", name="draft", current_version_id=None),
    ])


class TestPassThrough:

    def test_pinned_reference_is_returned_unchanged(self, lockbox):
        pinned = ref("DB", "e6q1", version_id="v0")

        result = resolve_latest_lockbox_versions(lockbox, "b1g", [pinned])

        assert result == [pinned]
        assert lockbox.get_calls == []
        assert lockbox.list_calls == []

    def test_empty_list(self, lockbox):
        assert resolve_latest_lockbox_versions(lockbox, "b1g", []) == []

    def test_result_is_a_new_list(self, lockbox):
        secrets = [ref("DB", "e6q1", version_id="v0")]

        assert resolve_latest_lockbox_versions(lockbox, "b1g", secrets) is not secrets


class TestResolveById:

    def test_latest_is_pinned_to_current_version(self, lockbox):
        result = resolve_latest_lockbox_versions(lockbox, "b1g", [ref("DB", "e6q1", key="password")])

        assert result == [ref("DB", "e6q1", version_id="v1", key="password")]
        assert lockbox.list_calls == []

    def test_order_and_pinned_entries_preserved(self, lockbox):
        secrets = [
            ref("A", "e6q2"),
            ref("B", "e6q1", version_id="v0"),
            ref("C", "e6q1"),
        ]

        result = resolve_latest_lockbox_versions(lockbox, "b1g", secrets)

        assert [s.version_id for s in result] == ["v2", "v0", "v1"]
        assert [s.environment_variable for s in result] == ["A", "B", "C"]
        assert lockbox.get_calls.count("e6q1") == 1

    def test_same_secret_different_keys_resolve_independently(self, lockbox):
        secrets = [ref("USER", "e6q1", key="user"), ref("PASSWORD", "e6q1", key="password")]

        result = resolve_latest_lockbox_versions(lockbox, "b1g", secrets)

        assert result == [
            ref("USER", "e6q1", version_id="v1", key="user"),
            ref("PASSWORD", "e6q1", version_id="v1", key="password"),
        ]

    def test_secret_without_current_version_fails(self, lockbox):
        with pytest.raises(SecretResolutionError) as exc_info:
            resolve_latest_lockbox_versions(lockbox, "b1g", [ref("D", "e6q3")])

        assert "Secret e6q3 has no current version" in str(exc_info.value)
        assert lockbox.list_calls == []

    def test_stage_results_are_tagged(self, lockbox):
        results = resolve_secrets_by_id(lockbox, [ref("A", "e6q1"), ref("B", "db-password"), ref("C", "e6q3")])

        assert isinstance(results[0], Resolved)
        assert isinstance(results[1], Fallback)
        assert results[1].original == ref("B", "db-password")
        assert isinstance(results[2], Failed)

    def test_concurrency_is_bounded(self):
        infos = [LockboxSecretInfo(id=f"s{i}", name=f"n{i}", current_version_id="v") for i in range(20)]
        lockbox = FakeLockbox(infos, delay=0.02)

        result = resolve_latest_lockbox_versions(lockbox, "b1g", [ref(f"E{i}", f"s{i}") for i in range(20)])

        assert len(result) == 20
        assert 1 <= lockbox.max_in_flight <= 5

    def test_custom_concurrency(self):
        infos = [LockboxSecretInfo(id=f"s{i}", name=f"n{i}", current_version_id="v") for i in range(6)]
        lockbox = FakeLockbox(infos, delay=0.01)

        resolve_latest_lockbox_versions(lockbox, "b1g", [ref(f"E{i}", f"s{i}") for i in range(6)], concurrency=1)

        assert lockbox.max_in_flight == 1


class TestResolveByName:

    def test_name_fallback_rewrites_id(self, lockbox):
        result = resolve_latest_lockbox_versions(lockbox, "b1g", [ref("DB", "db-password", key="pw")])

        assert result == [ref("DB", "e6q1", version_id="v1", key="pw")]
        assert len(lockbox.list_calls) == 1
        assert lockbox.list_calls[0] == ("b1g", LIST_PAGE_SIZE, "")

    def test_folder_is_listed_once_for_many_fallbacks(self, lockbox):
        secrets = [ref("A", "db-password"), ref("B", "api-token"), ref("C", "db-password", key="other")]

        result = resolve_latest_lockbox_versions(lockbox, "b1g", secrets)

        assert [(s.id, s.version_id) for s in result] == [("e6q1", "v1"), ("e6q2", "v2"), ("e6q1", "v1")]
        assert len(lockbox.list_calls) == 1

    def test_name_match_is_exact(self, lockbox):
        with pytest.raises(SecretResolutionError) as exc_info:
            resolve_latest_lockbox_versions(lockbox, "b1g", [ref("DB", "DB-Password")])

        assert str(exc_info.value) == "Failed to resolve latest versions for secrets: Failed to resolve secret: DB-Password"

    def test_named_secret_without_current_version_fails(self, lockbox):
        with pytest.raises(SecretResolutionError) as exc_info:
            resolve_latest_lockbox_versions(lockbox, "b1g", [ref("D", "draft")])

        assert "Secret draft (found as e6q3) has no current version" in str(exc_info.value)

    def test_listing_follows_page_tokens(self):
        infos = [LockboxSecretInfo(id=f"id{i:03}", name=f"name{i:03}", current_version_id=f"v{i}") for i in range(7)]
        lockbox = FakeLockbox(infos, page_size=3)

        by_name = find_secrets_in_folder(lockbox, "b1g")

        assert len(by_name) == 7
        assert by_name["name006"].id == "id006"
        assert [call[2] for call in lockbox.list_calls] == ["", "3", "6"]


class TestAggregateFailure:

    def test_mixed_batch_fails_as_a_whole(self, lockbox):
        secrets = [ref("OK", "e6q1"), ref("BAD", "no-such-secret"), ref("ALSO_BAD", "e6q3")]

        with pytest.raises(SecretResolutionError) as exc_info:
            resolve_latest_lockbox_versions(lockbox, "b1g", secrets)

        message = str(exc_info.value)
        assert message.startswith("Failed to resolve latest versions for secrets: ")
        assert "no-such-secret" in message
        assert exc_info.value.messages == [
            "Failed to resolve secret: no-such-secret",
            "Secret e6q3 has no current version",
        ]

    def test_messages_joined_with_comma(self, lockbox):
        with pytest.raises(SecretResolutionError) as exc_info:
            resolve_latest_lockbox_versions(lockbox, "b1g", [ref("A", "x"), ref("B", "y")])

        assert str(exc_info.value).endswith("Failed to resolve secret: x, Failed to resolve secret: y")

    def test_listing_error_propagates(self):
        class BrokenListing(FakeLockbox):
            def list_secrets(self, folder_id, page_size=100, page_token=""):
                raise PermissionError("lockbox.secrets.list denied")

        with pytest.raises(PermissionError):
            resolve_latest_lockbox_versions(BrokenListing(), "b1g", [ref("A", "by-name")])
