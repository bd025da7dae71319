import re

import httpx
import pytest

from group_revoker.config import RetryPolicy, RunConfig
from group_revoker.errors import AuthError
from group_revoker.graph.client import GraphClient
from group_revoker.safety.guardian import WriteGuard
from group_revoker.workflow.revoker import Pacer


USERS_PATH = "/v1.0/users"
MEMBER_OF_RE = re.compile(r"/v1\.0/users/([^/]+)/memberOf")
GROUP_RE = re.compile(r"/v1\.0/groups/([^/]+)")
MEMBER_REF_RE = re.compile(r"/v1\.0/groups/([^/]+)/members/([^/]+)/\$ref")


async def no_sleep(seconds):
    return None


def group(group_id, name=None, group_types=None):
    entry = {"@odata.type": "#microsoft.graph.group", "id": group_id}
    if name is not None:
        entry["displayName"] = name
    if group_types is not None:
        entry["groupTypes"] = group_types
    return entry


def graph_error(status, code, message):
    return httpx.Response(status, json={"error": {"code": code, "message": message}})


class FakeGraph:
    """In-memory stand-in for the Graph endpoints the workflow touches."""

    def __init__(self, users=None, member_of=None, delete_status=None):
        self.users = users or {}
        self.member_of = member_of or {}
        self.delete_status = delete_status or {}
        self.requests = []

    @property
    def deletes(self):
        return [path for method, path in self.requests if method == "DELETE"]

    @property
    def deleted_groups(self):
        return [MEMBER_REF_RE.fullmatch(p).group(1) for p in self.deletes]

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests.append((request.method, path))

        if request.method == "GET" and path == USERS_PATH:
            expr = request.url.params.get("$filter", "")
            upn = expr.split(" eq ", 1)[1][1:-1].replace("''", "'")
            return httpx.Response(200, json={"value": self.users.get(upn, [])})

        m = MEMBER_OF_RE.fullmatch(path)
        if request.method == "GET" and m:
            return httpx.Response(200, json={"value": self.member_of.get(m.group(1), [])})

        m = MEMBER_REF_RE.fullmatch(path)
        if request.method == "DELETE" and m:
            group_id, user_id = m.groups()
            response = self.delete_status.get(group_id, 204)
            if isinstance(response, int):
                response = httpx.Response(response)
            if response.status_code == 204:
                self.member_of[user_id] = [
                    e for e in self.member_of.get(user_id, []) if e.get("id") != group_id
                ]
            return response

        m = GROUP_RE.fullmatch(path)
        if request.method == "GET" and m:
            return httpx.Response(200, json={"displayName": f"name-of-{m.group(1)}"})

        return graph_error(400, "Request_BadRequest", f"unexpected {request.method} {path}")


def make_client(handler, retry=None, dry_run=False, sleep=no_sleep, config=None):
    return GraphClient(
        token_provider=lambda: "test-token",
        guardian=WriteGuard(dry_run=dry_run),
        retry=retry or RetryPolicy(max_attempts=3, base_delay=0.0),
        config=config,
        transport=httpx.MockTransport(handler),
        sleep=sleep,
    )


class SessionOpener:
    """Opens GraphClients backed by a FakeGraph and remembers them."""

    def __init__(self, graph, fail_auth=False):
        self.graph = graph
        self.fail_auth = fail_auth
        self.sessions = []

    async def __call__(self, config: RunConfig) -> GraphClient:
        if self.fail_auth:
            raise AuthError("App-only auth failed: AADSTS7000215: Invalid client secret provided.")
        client = make_client(
            self.graph.handler,
            retry=RetryPolicy(max_attempts=config.retry.max_attempts, base_delay=0.0),
            dry_run=config.revocation.dry_run,
            config=config.revocation,
        )
        self.sessions.append(client)
        return await client.open()


class FakeMsalApp:
    """Stand-in for msal.ConfidentialClientApplication."""

    instances = []

    def __init__(self, client_id, authority, client_credential, result=None):
        self.client_id = client_id
        self.authority = authority
        self.client_credential = client_credential
        self.calls = 0
        self.result = result or {"access_token": "token-1", "expires_in": 3600}
        FakeMsalApp.instances.append(self)

    def acquire_token_for_client(self, scopes):
        self.calls += 1
        self.scopes = scopes
        return self.result


@pytest.fixture
def fast_pacer():
    return Pacer(0.0, sleep=no_sleep)


@pytest.fixture(autouse=True)
def _reset_fake_apps():
    FakeMsalApp.instances = []
    yield
