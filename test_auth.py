"""
test_auth.py

Token caching and refresh for the per-audience authorizers.
"""

import threading

import pytest

from azurerm.auth import Authorizer, CallbackAuthorizer, audience_for, scope_for
from fakes import FakeCredential

MANAGEMENT = "https://management.azure.com/"


def test_scope_and_audience_conversions():
    assert scope_for(MANAGEMENT) == "https://management.azure.com/.default"
    assert scope_for("https://vault.azure.net/.default") == "https://vault.azure.net/.default"
    assert audience_for("https://vault.azure.net/.default") == "https://vault.azure.net"
    assert audience_for("https://vault.azure.net/") == "https://vault.azure.net"


def test_token_is_cached_until_near_expiry():
    credential = FakeCredential(lifetime=3600)
    auth = Authorizer(credential, MANAGEMENT)

    first = auth.get_token()
    second = auth.get_token()

    assert first is second
    assert credential.calls == [("https://management.azure.com/.default",)]


def test_token_inside_refresh_margin_is_replaced():
    credential = FakeCredential(lifetime=60)
    auth = Authorizer(credential, MANAGEMENT)

    auth.get_token()
    auth.get_token()
    assert len(credential.calls) == 2


def test_requested_scopes_do_not_change_the_audience():
    credential = FakeCredential()
    auth = Authorizer(credential, MANAGEMENT)

    auth.get_token("https://graph.windows.net/.default")
    assert credential.calls == [("https://management.azure.com/.default",)]


def test_refresh_forces_an_exchange():
    credential = FakeCredential()
    auth = Authorizer(credential, MANAGEMENT)

    auth.get_token()
    token = auth.refresh()

    assert len(credential.calls) == 2
    assert auth.get_token() is token


def test_concurrent_callers_share_one_exchange():
    credential = FakeCredential()
    auth = Authorizer(credential, MANAGEMENT)
    barrier = threading.Barrier(8)
    tokens = []

    def worker():
        barrier.wait()
        tokens.append(auth.get_token())

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(credential.calls) == 1
    assert len({id(t) for t in tokens}) == 1


def test_callback_authorizer_builds_one_authorizer_per_audience():
    credential = FakeCredential()
    audiences = []

    def factory(audience):
        audiences.append(audience)
        return Authorizer(credential, audience)

    auth = CallbackAuthorizer(factory)
    auth.get_token("https://vault.azure.net/.default")
    auth.get_token("https://vault.azure.net/.default")
    auth.get_token("https://managedhsm.azure.net/.default")

    assert audiences == ["https://vault.azure.net", "https://managedhsm.azure.net"]
    assert credential.calls == [
        ("https://vault.azure.net/.default",),
        ("https://managedhsm.azure.net/.default",),
    ]


def test_callback_authorizer_needs_a_scope():
    auth = CallbackAuthorizer(lambda audience: Authorizer(FakeCredential(), audience))
    with pytest.raises(ValueError):
        auth.get_token()
