from typing import List

import pytest
from fastapi.testclient import TestClient

from k8s_fakes import (
    PASSWD,
    FakeClientProvider,
    FakeCoreV1Api,
    FakeCustomObjectsApi,
    FakeExecutor,
    exec_failure,
    make_pod,
    make_settings,
)
from wte_server.app.main import create_app
from wte_server.app.workspaces.lifecycle import ManagerState
from wte_server.app.workspaces.operations import ExecOutput
from wte_server.app.workspaces.shell import GET_SHELL_COMMAND, GET_USER_ID_COMMAND, READ_PASSWD_COMMAND

AUTH = {"X-Forwarded-Access-Token": "sha256~user-token"}


class _RecordingActivityManager:
    def __init__(self) -> None:
        self.state = ManagerState.idle
        self.ticks = 0
        self.events: List[str] = []

    def start(self) -> None:
        self.state = ManagerState.running
        self.events.append("start")

    def tick(self) -> None:
        self.ticks += 1

    async def shutdown(self) -> None:
        self.state = ManagerState.terminated
        self.events.append("shutdown")


def _provider(pods=None, executor=None, uid="uid-owner") -> FakeClientProvider:
    if pods is None:
        pods = [make_pod("workspace-pod-1", ["web-terminal-exec", "web-terminal-tooling"])]
    if executor is None:
        executor = FakeExecutor({GET_SHELL_COMMAND: ExecOutput(stdout="/bin/bash\n", stderr="")})
    return FakeClientProvider(
        core_v1=FakeCoreV1Api(pods),
        user_api=FakeCustomObjectsApi(uid=uid),
        executor=executor,
    )


@pytest.fixture
def manager() -> _RecordingActivityManager:
    return _RecordingActivityManager()


def _client(provider, manager, **env) -> TestClient:
    settings = make_settings(HOSTNAME="workspace-pod-1", **env)
    return TestClient(create_app(settings, client_provider=provider, activity_manager=manager))


def test_healthz_is_unauthenticated(manager):
    with _client(_provider(uid="nobody"), manager) as client:
        resp = client.get("/healthz")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["service"] == "web-terminal-exec"
    assert body["version"]


def test_lifespan_starts_and_stops_activity_manager(manager):
    with _client(_provider(), manager):
        assert manager.events == ["start"]
    assert manager.events == ["start", "shutdown"]


def test_exec_init_success(manager):
    provider = _provider()
    with _client(provider, manager) as client:
        resp = client.post("/exec/init", json={"kubeconfig": {"namespace": "dev-ns", "username": "alice"}}, headers=AUTH)

    assert resp.status_code == 200
    assert resp.json() == {"pod": "workspace-pod-1", "container": "web-terminal-tooling", "cmd": ["/bin/bash"]}
    assert set(provider.tokens) == {"sha256~user-token"}


def test_exec_init_accepts_empty_body_and_bearer_header(manager):
    provider = _provider()
    with _client(provider, manager) as client:
        resp = client.post("/exec/init", headers={"X-Access-Token": "Bearer direct-token"})
    assert resp.status_code == 200
    assert set(provider.tokens) == {"direct-token"}


def test_exec_init_passwd_fallback(manager):
    executor = FakeExecutor(
        {
            GET_USER_ID_COMMAND: ExecOutput(stdout="1000", stderr=""),
            READ_PASSWD_COMMAND: ExecOutput(stdout=PASSWD, stderr=""),
        }
    )
    with _client(_provider(executor=executor), manager) as client:
        resp = client.post("/exec/init", json={"container": "web-terminal-tooling"}, headers=AUTH)
    assert resp.status_code == 200
    assert resp.json()["cmd"] == ["/bin/zsh"]


def test_exec_init_missing_token(manager):
    with _client(_provider(), manager) as client:
        resp = client.post("/exec/init", json={})
    assert resp.status_code == 401
    assert resp.json() == {"detail": "authorization header is missing"}


def test_exec_init_wrong_user(manager):
    provider = _provider(uid="someone-else")
    with _client(provider, manager) as client:
        resp = client.post("/exec/init", json={}, headers=AUTH)
    assert resp.status_code == 401
    assert "not authorized" in resp.json()["detail"]
    assert provider.executor.calls == []


@pytest.mark.parametrize("payload", [b"{not json", b'{"container": 5}', b"[]"])
def test_exec_init_malformed_body(manager, payload):
    with _client(_provider(), manager) as client:
        resp = client.post("/exec/init", content=payload, headers={**AUTH, "Content-Type": "application/json"})
    assert resp.status_code == 400


def test_exec_init_body_too_large(manager):
    provider = _provider()
    with _client(provider, manager, MAX_BODY_BYTES="64") as client:
        resp = client.post("/exec/init", json={"container": "x" * 200}, headers=AUTH)
    assert resp.status_code == 413
    assert provider.executor.calls == []


def test_exec_init_unknown_container(manager):
    with _client(_provider(), manager) as client:
        resp = client.post("/exec/init", json={"container": "missing"}, headers=AUTH)
    assert resp.status_code == 400
    assert resp.json() == {"detail": "container 'missing' not found in pod 'workspace-pod-1'"}


def test_exec_init_no_running_pod(manager):
    with _client(_provider(pods=[]), manager) as client:
        resp = client.post("/exec/init", json={}, headers=AUTH)
    assert resp.status_code == 400


def test_exec_init_shell_detection_failure(manager):
    executor = FakeExecutor({GET_USER_ID_COMMAND: exec_failure()})
    with _client(_provider(executor=executor), manager) as client:
        resp = client.post("/exec/init", json={}, headers=AUTH)
    assert resp.status_code == 500
    assert "failed to get user id" in resp.json()["detail"]


def test_exec_init_rejects_other_methods(manager):
    with _client(_provider(), manager) as client:
        resp = client.get("/exec/init", headers=AUTH)
    assert resp.status_code == 405


def test_activity_tick(manager):
    with _client(_provider(), manager) as client:
        resp = client.post("/activity/tick", headers=AUTH)
    assert resp.status_code == 204
    assert resp.content == b""
    assert manager.ticks == 1


def test_activity_tick_requires_owner(manager):
    with _client(_provider(uid="someone-else"), manager) as client:
        assert client.post("/activity/tick").status_code == 401
        assert client.post("/activity/tick", headers=AUTH).status_code == 401
    assert manager.ticks == 0


def test_app_builds_idle_manager_when_not_injected():
    devworkspace_api = FakeCustomObjectsApi()
    provider = FakeClientProvider(user_api=FakeCustomObjectsApi(), devworkspace_api=devworkspace_api)
    app = create_app(make_settings(IDLE_TIMEOUT="10m"), client_provider=provider)

    with TestClient(app) as client:
        manager = app.state.activity_manager
        assert manager.state is ManagerState.running
        assert client.post("/activity/tick", headers=AUTH).status_code == 204

    assert manager.state is ManagerState.terminated
    assert devworkspace_api.patch_calls == []


def test_exec_init_container_name_must_match_exactly(manager):
    with _client(_provider(), manager) as client:
        resp = client.post("/exec/init", json={"container": " web-terminal-tooling "}, headers=AUTH)
    assert resp.status_code == 400
    assert resp.json() == {"detail": "container ' web-terminal-tooling ' not found in pod 'workspace-pod-1'"}


def test_exec_init_pod_list_transport_failure(manager):
    provider = FakeClientProvider(
        core_v1=FakeCoreV1Api(error=ConnectionRefusedError("connection refused")),
        user_api=FakeCustomObjectsApi(uid="uid-owner"),
    )
    with _client(provider, manager) as client:
        resp = client.post("/exec/init", json={}, headers=AUTH)
    assert resp.status_code == 500
    assert resp.json()["detail"].startswith("failed to list pods in namespace 'user-ns'")
