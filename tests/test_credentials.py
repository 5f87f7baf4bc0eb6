from __future__ import annotations

import json
from pathlib import Path

import pytest

from saucy.credentials.resolver import PLACEHOLDER_KEY, CredentialOrigin, CredentialResolver
from saucy.credentials.stores import LOCAL_KEY_NAME, InMemoryUserKeyStore, LocalKeyStore
from saucy.session import Anonymous, Authenticated, Demo, UserProfile

from conftest import REAL_KEY

USER = Authenticated(UserProfile(uid="user-1", email="a@example.com"))


class CountingSource:
    def __init__(self, value=None, error=None) -> None:
        self.value = value
        self.error = error
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.error:
            raise self.error
        return self.value


class CountingStore(InMemoryUserKeyStore):
    def __init__(self, initial=None, *, fail_reads=False, fail_writes=False) -> None:
        super().__init__(initial)
        self.reads = 0
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes

    def get_api_key(self, uid):
        self.reads += 1
        if self.fail_reads:
            raise ConnectionError("store offline")
        return super().get_api_key(uid)

    def save_api_key(self, uid, api_key):
        if self.fail_writes:
            raise ConnectionError("store offline")
        super().save_api_key(uid, api_key)


class CountingLocalStore(LocalKeyStore):
    def __init__(self, path) -> None:
        super().__init__(path)
        self.reads = 0

    def get(self, key=LOCAL_KEY_NAME):
        self.reads += 1
        return super().get(key)


def test_bridge_key_wins_and_later_sources_are_not_consulted(local_store: LocalKeyStore) -> None:
    remote = CountingStore({"user-1": "r" * 30})
    env = CountingSource("e" * 30)
    resolver = CredentialResolver(
        local_store=local_store,
        remote_store=remote,
        bridge=CountingSource("b" * 25),
        environment=env,
    )

    credential = resolver.resolve(USER)

    assert credential.value == "b" * 25
    assert credential.origin is CredentialOrigin.BRIDGE
    assert not credential.is_demo
    assert remote.reads == 0
    assert env.calls == 0


def test_remote_key_wins_over_local_and_environment(tmp_path: Path) -> None:
    local = CountingLocalStore(tmp_path / "local_storage.json")
    local.set(LOCAL_KEY_NAME, "l" * 25)
    remote = CountingStore({"user-1": "r" * 30})
    env = CountingSource("e" * 30)
    resolver = CredentialResolver(local_store=local, remote_store=remote, bridge=CountingSource(None), environment=env)

    credential = resolver.resolve(USER)

    assert credential.value == "r" * 30
    assert credential.origin is CredentialOrigin.REMOTE_STORE
    assert remote.reads == 1
    assert local.reads == 0
    assert env.calls == 0


def test_local_key_wins_over_environment(tmp_path: Path) -> None:
    local = CountingLocalStore(tmp_path / "local_storage.json")
    local.set(LOCAL_KEY_NAME, "l" * 25)
    remote = CountingStore()
    bridge = CountingSource(None)
    env = CountingSource("e" * 30)
    resolver = CredentialResolver(local_store=local, remote_store=remote, bridge=bridge, environment=env)

    credential = resolver.resolve(USER)

    assert credential.value == "l" * 25
    assert credential.origin is CredentialOrigin.LOCAL_STORE
    assert (bridge.calls, remote.reads, local.reads) == (1, 1, 1)
    assert env.calls == 0


def test_placeholder_in_remote_store_falls_through_to_local(local_store: LocalKeyStore) -> None:
    local_store.set(LOCAL_KEY_NAME, "l" * 25)
    resolver = CredentialResolver(
        local_store=local_store,
        remote_store=CountingStore({"user-1": PLACEHOLDER_KEY}),
        environment=lambda: None,
    )

    credential = resolver.resolve(USER)

    assert credential.origin is CredentialOrigin.LOCAL_STORE
    assert credential.value == "l" * 25


def test_placeholder_in_local_store_falls_through_to_environment(local_store: LocalKeyStore) -> None:
    local_store.set(LOCAL_KEY_NAME, PLACEHOLDER_KEY)
    env = CountingSource(REAL_KEY)
    resolver = CredentialResolver(local_store=local_store, environment=env)

    credential = resolver.resolve(Anonymous())

    assert credential.origin is CredentialOrigin.ENVIRONMENT
    assert env.calls == 1


def test_placeholder_in_every_store_means_demo(local_store: LocalKeyStore) -> None:
    local_store.set(LOCAL_KEY_NAME, PLACEHOLDER_KEY)
    resolver = CredentialResolver(
        local_store=local_store,
        remote_store=CountingStore({"user-1": PLACEHOLDER_KEY}),
        environment=lambda: None,
    )

    assert resolver.resolve(USER).is_demo


def test_remote_store_consulted_only_for_authenticated_sessions(local_store: LocalKeyStore) -> None:
    remote = CountingStore({"user-1": "r" * 30})
    resolver = CredentialResolver(local_store=local_store, remote_store=remote, environment=lambda: None)

    assert resolver.resolve(USER).origin is CredentialOrigin.REMOTE_STORE
    assert resolver.resolve(Demo()).is_demo
    assert resolver.resolve(Anonymous()).is_demo
    assert remote.reads == 1


def test_remote_failure_is_skipped_and_local_key_used(local_store: LocalKeyStore) -> None:
    local_store.set(LOCAL_KEY_NAME, "l" * 25)
    resolver = CredentialResolver(
        local_store=local_store,
        remote_store=CountingStore(fail_reads=True),
        environment=lambda: None,
    )

    credential = resolver.resolve(USER)

    assert credential.value == "l" * 25
    assert credential.origin is CredentialOrigin.LOCAL_STORE


def test_bridge_exception_falls_through_to_environment(local_store: LocalKeyStore) -> None:
    resolver = CredentialResolver(
        local_store=local_store,
        bridge=CountingSource(error=RuntimeError("bridge missing")),
        environment=lambda: REAL_KEY,
    )

    credential = resolver.resolve(Anonymous())

    assert credential.origin is CredentialOrigin.ENVIRONMENT
    assert credential.value == REAL_KEY


@pytest.mark.parametrize("value", [PLACEHOLDER_KEY, "short-key", ""])
def test_rejected_environment_values_produce_demo(local_store: LocalKeyStore, value: str) -> None:
    resolver = CredentialResolver(local_store=local_store, environment=lambda: value)

    credential = resolver.resolve(Anonymous())

    assert credential.is_demo
    assert credential.value == ""
    assert "No active API Key found" in credential.message


def test_placeholder_bridge_is_skipped_and_environment_used(local_store: LocalKeyStore) -> None:
    resolver = CredentialResolver(
        local_store=local_store,
        bridge=lambda: PLACEHOLDER_KEY,
        environment=lambda: "x" * 25,
    )

    credential = resolver.resolve(Anonymous())

    assert credential.origin is CredentialOrigin.ENVIRONMENT
    assert credential.value == "x" * 25


def test_stored_keys_must_exceed_twenty_characters(local_store: LocalKeyStore) -> None:
    local_store.set(LOCAL_KEY_NAME, "s" * 20)
    resolver = CredentialResolver(local_store=local_store, environment=lambda: None)

    assert resolver.resolve(Anonymous()).is_demo

    local_store.set(LOCAL_KEY_NAME, "s" * 21)
    assert resolver.resolve(Anonymous()).origin is CredentialOrigin.LOCAL_STORE


def test_save_rejects_short_keys(local_store: LocalKeyStore) -> None:
    resolver = CredentialResolver(local_store=local_store)

    assert resolver.save(Anonymous(), "too-short") is False
    assert local_store.get(LOCAL_KEY_NAME) is None


@pytest.mark.parametrize("key", ["k" * 20, "   " + "k" * 18 + "   ", "  " + "k" * 20 + "\n", PLACEHOLDER_KEY])
def test_save_refuses_keys_resolve_would_reject(local_store: LocalKeyStore, key: str) -> None:
    resolver = CredentialResolver(local_store=local_store, environment=lambda: None)

    assert resolver.save(Anonymous(), key) is False
    assert local_store.get(LOCAL_KEY_NAME) is None
    assert resolver.resolve(Anonymous()).is_demo


def test_save_accepts_twenty_one_characters_and_stores_trimmed(local_store: LocalKeyStore) -> None:
    resolver = CredentialResolver(local_store=local_store, environment=lambda: None)

    assert resolver.save(Anonymous(), "\t" + "k" * 21 + "  ") is True

    assert local_store.get(LOCAL_KEY_NAME) == "k" * 21
    credential = resolver.resolve(Anonymous())
    assert credential.origin is CredentialOrigin.LOCAL_STORE
    assert credential.value == "k" * 21


def test_save_then_resolve_survives_remote_write_failure(local_store: LocalKeyStore) -> None:
    remote = CountingStore(fail_writes=True)
    resolver = CredentialResolver(local_store=local_store, remote_store=remote, environment=lambda: None)

    assert resolver.save(USER, f"  {REAL_KEY}  ") is True

    credential = resolver.resolve(USER)
    assert credential.value == REAL_KEY
    assert credential.origin is CredentialOrigin.LOCAL_STORE


def test_save_writes_remote_and_local(local_store: LocalKeyStore) -> None:
    remote = CountingStore()
    resolver = CredentialResolver(local_store=local_store, remote_store=remote)

    resolver.save(USER, REAL_KEY)

    assert remote.get_api_key("user-1") == REAL_KEY
    assert local_store.get(LOCAL_KEY_NAME) == REAL_KEY


def test_clear_removes_local_key(local_store: LocalKeyStore) -> None:
    resolver = CredentialResolver(local_store=local_store, environment=lambda: None)
    resolver.save(Anonymous(), REAL_KEY)

    resolver.clear()

    assert resolver.resolve(Anonymous()).is_demo


def test_local_store_ignores_corrupt_file(tmp_path: Path) -> None:
    path = tmp_path / "local_storage.json"
    path.write_text("{not json")
    store = LocalKeyStore(path)

    assert store.get() is None
    store.set(LOCAL_KEY_NAME, REAL_KEY)
    assert json.loads(path.read_text()) == {LOCAL_KEY_NAME: REAL_KEY}
