"""
fakes.py

In-memory stand-ins for the Azure SDK surfaces the adapters touch.
Shared by the test modules; no network access anywhere.
"""

import copy
import json
import threading
import time
from types import SimpleNamespace
from urllib.parse import urlparse

import requests
from azure.core.credentials import AccessToken
from azure.core.exceptions import HttpResponseError, ResourceNotFoundError
from requests.structures import CaseInsensitiveDict

from azurerm.config import ClientRegistry
from azurerm.environments import PUBLIC_CLOUD

SUBSCRIPTION = "00000000-0000-0000-0000-000000000001"
TENANT = "00000000-0000-0000-0000-000000000002"
CLIENT = "00000000-0000-0000-0000-000000000003"
OBJECT = "00000000-0000-0000-0000-000000000004"


def http_error(status: int, message: str = "boom") -> HttpResponseError:
    err = ResourceNotFoundError(message=message) if status == 404 else HttpResponseError(message=message)
    err.status_code = status
    return err


def not_found(*args, **kwargs):
    raise http_error(404, "Resource not found")


def arm_id(group: str, provider: str = "", *path: str) -> str:
    id = f"/subscriptions/{SUBSCRIPTION}/resourceGroups/{group}"
    if provider:
        id += f"/providers/{provider}/" + "/".join(path)
    return id


class FakePoller:
    """LROPoller shape: done() / wait() / result(). Never completes when `hang` until finish()."""

    def __init__(self, result=None, error=None, hang=False):
        self._result = result
        self._error = error
        self._finished = threading.Event()
        if not hang:
            self._finished.set()

    def finish(self):
        self._finished.set()

    def done(self) -> bool:
        return self._finished.is_set()

    def wait(self, timeout=None):
        self._finished.wait(timeout)

    def result(self, timeout=None):
        if self._error is not None:
            raise self._error
        return self._result


class FakeCredential:
    """TokenCredential that counts exchanges per scope."""

    def __init__(self, lifetime: int = 3600, error=None):
        self.lifetime = lifetime
        self.error = error
        self.calls = []

    def get_token(self, *scopes, **kwargs):
        self.calls.append(scopes)
        if self.error is not None:
            raise self.error
        return AccessToken(f"token-{len(self.calls)}", int(time.time()) + self.lifetime)


class Missing:
    """Any chain of attribute lookups ends in a call that raises a 404."""

    def __getattr__(self, name):
        if name.startswith("__"):
            raise AttributeError(name)
        return Missing()

    def __call__(self, *args, **kwargs):
        not_found()


def make_registry(poll_interval: float = 0.01, **clients) -> ClientRegistry:
    return ClientRegistry(
        clients,
        environment=PUBLIC_CLOUD,
        subscription_id=SUBSCRIPTION,
        tenant_id=TENANT,
        client_id=CLIENT,
        poll_interval=poll_interval,
    )


# ---------------------------------------------------------------------------
# MySQL servers operation group
# ---------------------------------------------------------------------------

class FakeMySQLServers:
    """
    Stores create payloads and serves them back shaped like the SDK's
    Server model. `location_display` mimics ARM echoing the region name.
    """

    def __init__(self, location_display: str = "West Europe"):
        self.store = {}
        self.calls = []
        self.location_display = location_display
        self.get_errors = []
        self.omit_id = False
        self.hang = False

    def begin_create(self, group, name, params):
        self.calls.append(("begin_create", group, name, copy.deepcopy(params)))
        self.store[(group, name)] = copy.deepcopy(params)
        return FakePoller(hang=self.hang)

    def begin_update(self, group, name, params):
        self.calls.append(("begin_update", group, name, copy.deepcopy(params)))
        if (group, name) not in self.store:
            raise http_error(404)
        stored = self.store[(group, name)]
        stored["sku"] = copy.deepcopy(params["sku"])
        stored["tags"] = dict(params["tags"])
        stored["properties"]["ssl_enforcement"] = params["ssl_enforcement"]
        stored["properties"]["administrator_login_password"] = params["administrator_login_password"]
        return FakePoller(hang=self.hang)

    def begin_delete(self, group, name):
        self.calls.append(("begin_delete", group, name))
        if (group, name) not in self.store:
            raise http_error(404)
        del self.store[(group, name)]
        return FakePoller()

    def get(self, group, name):
        self.calls.append(("get", group, name))
        if self.get_errors:
            error = self.get_errors.pop(0)
            if error is not None:
                raise error
        if (group, name) not in self.store:
            raise http_error(404)
        return server_object(group, name, self.store[(group, name)], self.location_display, self.omit_id)


def server_object(group, name, payload, location=None, omit_id=False):
    props = payload["properties"]
    sku = payload["sku"]
    return SimpleNamespace(
        id=None if omit_id else arm_id(group, "Microsoft.DBforMySQL", "servers", name),
        name=name,
        location=location or payload["location"],
        administrator_login=props["administrator_login"],
        version=props["version"],
        ssl_enforcement=props["ssl_enforcement"],
        storage_profile=SimpleNamespace(storage_mb=props["storage_profile"]["storage_mb"]),
        sku=SimpleNamespace(name=sku["name"], capacity=sku["capacity"], tier=sku["tier"], size=sku["size"]),
        fully_qualified_domain_name=f"{name}.mysql.database.azure.com",
        tags=dict(payload.get("tags") or {}),
    )


def mysql_config(**overrides):
    config = {
        "name": "db1",
        "location": "West Europe",
        "resource_group_name": "rg1",
        "sku": {"name": "MYSQLB50", "capacity": 50, "tier": "Basic"},
        "administrator_login": "dbadmin",
        "administrator_login_password": "H@Sh1CoR3!",
        "version": "5.7",
        "storage_mb": 51200,
        "ssl_enforcement": "Enabled",
        "tags": {"env": "test"},
    }
    config.update(overrides)
    return config


# ---------------------------------------------------------------------------
# HTTP session behind a real azure-core RequestsTransport
# ---------------------------------------------------------------------------

class RecordingSession(requests.Session):
    """
    Captures every outbound request instead of sending it and answers 200
    with a minimal resource body, so SDK clients run their real pipelines
    (auth, user agent, serialization) against it.
    """

    def __init__(self):
        super().__init__()
        self.sent = []

    def request(self, method, url, headers=None, data=None, **kwargs):
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        self.sent.append(SimpleNamespace(
            method=method,
            url=url,
            headers=CaseInsensitiveDict(headers or {}),
            json=json.loads(data) if data else None,
        ))

        response = requests.Response()
        response.status_code = 200
        response.reason = "OK"
        response.url = url
        response.headers["Content-Type"] = "application/json"
        response._content = json.dumps({
            "id": urlparse(url).path,
            "name": urlparse(url).path.rstrip("/").rsplit("/", 1)[-1],
            "location": "westeurope",
            "properties": {"provisioningState": "Succeeded"},
        }).encode("utf-8")
        response._content_consumed = True
        response.raw = SimpleNamespace(enforce_content_length=False)
        return response

    def last(self, method: str):
        return [r for r in self.sent if r.method == method][-1]
