"""Shared fixtures: an in-memory controller served through httpx.MockTransport."""
import json

import httpx
import pytest

from aap_reconciler.client import ControllerClient, ControllerTransport
from aap_reconciler.config import ControllerConfig
from aap_reconciler.engine import Reconciler
from aap_reconciler.resources import ENCRYPTED
from aap_reconciler.utils import ChangeTracker

API_PREFIX = "/api/controller/v2"

# Fields the fake controller fills in on create, like a real one does
SERVER_DEFAULTS = {
    "organizations": {"description": "", "max_hosts": 0},
    "inventories": {"description": "", "kind": "", "variables": ""},
    "projects": {"description": "", "scm_branch": ""},
    "credentials": {"description": ""},
    "job_templates": {"description": "", "forks": 0, "verbosity": 0},
}

SECRET_INPUTS = ("password", "ssh_key_data", "ssh_key_unlock", "become_password")


class FakeController:
    """Minimal controller API keeping objects in memory."""

    def __init__(self):
        self.objects: dict[str, dict[int, dict]] = {}
        self.requests: list[httpx.Request] = []
        self.failures: dict[tuple[str, str], tuple[int, str]] = {}
        self.next_id = 1

    def fail(self, method: str, path: str, status: int, body: str = "") -> None:
        """Answer ``method path`` with a fixed status and body."""
        self.failures[(method, path)] = (status, body)

    def store(self, collection: str) -> dict[int, dict]:
        return self.objects.setdefault(collection, {})

    def seed(self, collection: str, **fields) -> int:
        """Put an object on the controller behind the client's back."""
        object_id = self.next_id
        self.next_id += 1
        self.store(collection)[object_id] = dict(fields, id=object_id)
        return object_id

    def bodies(self, method: str) -> list[dict]:
        return [
            json.loads(r.content) for r in self.requests
            if r.method == method and r.content
        ]

    def _render(self, collection: str, obj: dict) -> dict:
        data = dict(obj)
        if collection == "credentials" and isinstance(data.get("inputs"), dict):
            data["inputs"] = {
                k: (ENCRYPTED if k in SECRET_INPUTS else v)
                for k, v in data["inputs"].items()
            }
        data["related"] = {}
        data["summary_fields"] = {}
        return data

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        assert request.url.path.startswith(API_PREFIX)
        path = request.url.path[len(API_PREFIX):]

        failure = self.failures.get((request.method, path))
        if failure is not None:
            status, body = failure
            return httpx.Response(status, text=body)

        parts = [p for p in path.split("/") if p]
        collection = parts[0]
        objects = self.store(collection)

        if len(parts) == 1:
            if request.method != "POST":
                return httpx.Response(405, json={"detail": "Method not allowed."})
            data = json.loads(request.content)
            if not data.get("name"):
                return httpx.Response(400, json={"name": ["This field is required."]})
            obj = dict(SERVER_DEFAULTS.get(collection, {}))
            obj.update(data)
            obj["id"] = self.next_id
            self.next_id += 1
            objects[obj["id"]] = obj
            return httpx.Response(201, json=self._render(collection, obj))

        object_id = int(parts[1])
        if object_id not in objects:
            return httpx.Response(404, json={"detail": "Not found."})

        if request.method == "GET":
            return httpx.Response(200, json=self._render(collection, objects[object_id]))
        if request.method == "PATCH":
            objects[object_id].update(json.loads(request.content))
            return httpx.Response(200, json=self._render(collection, objects[object_id]))
        if request.method == "DELETE":
            del objects[object_id]
            return httpx.Response(204)
        return httpx.Response(405, json={"detail": "Method not allowed."})


@pytest.fixture
def controller():
    """Empty fake controller."""
    return FakeController()


@pytest.fixture
def config():
    """Basic-auth settings for the fake controller."""
    return ControllerConfig(
        host="https://aap.example.com",
        username="admin",
        password="secret",
    )


@pytest.fixture
def transport(config, controller):
    """Transport wired to the fake controller."""
    return ControllerTransport(config, http_transport=httpx.MockTransport(controller.handler))


@pytest.fixture
def client(transport):
    return ControllerClient(transport)


@pytest.fixture
def reconciler(client):
    return Reconciler(client, tracker=ChangeTracker("https://aap.example.com"))
