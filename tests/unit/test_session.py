import pytest
import yaml

from k8s_fakes import (
    KUBECONFIG_SCRIPT,
    PASSWD,
    FakeClientProvider,
    FakeCoreV1Api,
    FakeExecutor,
    exec_failure,
    make_pod,
    make_settings,
)
from wte_server.app.errors import (
    ContainerNotFoundError,
    InternalError,
    KubeconfigError,
    NoSuitableContainerError,
    PodNotFoundError,
    RemoteExecError,
    ShellDetectionError,
)
from wte_server.app.workspaces.operations import ExecOutput
from wte_server.app.workspaces.session import SessionInitializer, SessionInitRequest
from wte_server.app.workspaces.shell import GET_SHELL_COMMAND, GET_USER_ID_COMMAND, READ_PASSWD_COMMAND


def _provider(pods, executor=None) -> FakeClientProvider:
    return FakeClientProvider(core_v1=FakeCoreV1Api(pods), executor=executor or FakeExecutor(
        {GET_SHELL_COMMAND: ExecOutput(stdout="/bin/bash\n", stderr="")}
    ))


def test_full_pipeline(settings):
    provider = _provider([make_pod("workspace-pod-1", ["web-terminal-exec", "web-terminal-tooling"])])

    result = SessionInitializer(settings, provider).initialize(
        SessionInitRequest(token="tok", namespace="dev-ns", username="alice")
    )

    assert (result.pod_name, result.container_name, result.command) == ("workspace-pod-1", "web-terminal-tooling", ["/bin/bash"])
    assert provider.tokens == ["tok", "tok"]
    kubeconfig_call, shell_call = provider.executor.calls
    assert kubeconfig_call["container"] == "web-terminal-tooling"
    body = kubeconfig_call["command"].split("<<'EOF'", 1)[1].split("\n", 1)[1].split("\nEOF\n", 1)[0]
    doc = yaml.safe_load(body)
    assert doc["users"] == [{"name": "alice", "user": {"token": "tok"}}]
    assert doc["contexts"][0]["context"]["namespace"] == "dev-ns"
    assert shell_call["command"] == GET_SHELL_COMMAND


def test_passwd_fallback(settings):
    executor = FakeExecutor(
        {
            GET_USER_ID_COMMAND: ExecOutput(stdout="1000\n", stderr=""),
            READ_PASSWD_COMMAND: ExecOutput(stdout=PASSWD, stderr=""),
        }
    )
    provider = _provider([make_pod("workspace-pod-1", ["tools"])], executor)

    result = SessionInitializer(settings, provider).initialize(SessionInitRequest(token="tok"))

    assert result.command == ["/bin/zsh"]


def test_requested_container(settings):
    provider = _provider([make_pod("workspace-pod-1", ["web-terminal-tooling", "tools"])])
    result = SessionInitializer(settings, provider).initialize(SessionInitRequest(token="tok", container_name="tools"))
    assert result.container_name == "tools"


def test_unknown_container_stops_before_exec(settings):
    provider = _provider([make_pod("workspace-pod-1", ["tools"])])
    with pytest.raises(ContainerNotFoundError):
        SessionInitializer(settings, provider).initialize(SessionInitRequest(token="tok", container_name="nope"))
    assert provider.executor.calls == []


def test_only_infrastructure_container(settings):
    provider = _provider([make_pod("workspace-pod-1", ["web-terminal-exec"])])
    with pytest.raises(NoSuitableContainerError):
        SessionInitializer(settings, provider).initialize(SessionInitRequest(token="tok"))


def test_no_pod(settings):
    with pytest.raises(PodNotFoundError):
        SessionInitializer(settings, _provider([])).initialize(SessionInitRequest(token="tok"))


def test_several_pods_resolved_by_hostname(settings):
    provider = _provider([make_pod("other-pod", ["a"]), make_pod("workspace-pod-1", ["b"])])
    result = SessionInitializer(settings, provider).initialize(SessionInitRequest(token="tok"))
    assert (result.pod_name, result.container_name) == ("workspace-pod-1", "b")


def test_several_pods_without_hostname():
    provider = _provider([make_pod("pod-a", ["a"]), make_pod("pod-b", ["b"])])
    with pytest.raises(PodNotFoundError, match="could not determine"):
        SessionInitializer(make_settings(), provider).initialize(SessionInitRequest(token="tok"))


def test_custom_pod_selector(settings):
    provider = _provider([make_pod("pod-a", ["a"]), make_pod("pod-b", ["b"])])
    initializer = SessionInitializer(settings, provider, pod_selector=lambda pods: pods[-1])
    assert initializer.initialize(SessionInitRequest(token="tok")).pod_name == "pod-b"


def test_client_failure(settings):
    provider = FakeClientProvider(client_error=ValueError("token must not be empty"))
    with pytest.raises(InternalError, match="failed to create API client"):
        SessionInitializer(settings, provider).initialize(SessionInitRequest(token="tok"))


def test_missing_api_server_address():
    settings = make_settings(KUBERNETES_SERVICE_HOST="")
    provider = _provider([make_pod("workspace-pod-1", ["tools"])])
    with pytest.raises(KubeconfigError):
        SessionInitializer(settings, provider).initialize(SessionInitRequest(token="tok"))
    assert provider.executor.calls == []


def test_kubeconfig_failure_skips_shell_detection(settings):
    executor = FakeExecutor({KUBECONFIG_SCRIPT: exec_failure()})
    provider = _provider([make_pod("workspace-pod-1", ["tools"])], executor)
    with pytest.raises(RemoteExecError, match="failed to create kubeconfig"):
        SessionInitializer(settings, provider).initialize(SessionInitRequest(token="tok"))
    assert len(executor.calls) == 1


def test_shell_detection_failure(settings):
    executor = FakeExecutor({GET_USER_ID_COMMAND: exec_failure()})
    provider = _provider([make_pod("workspace-pod-1", ["tools"])], executor)
    with pytest.raises(ShellDetectionError):
        SessionInitializer(settings, provider).initialize(SessionInitRequest(token="tok"))
