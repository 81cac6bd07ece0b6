import pytest

from k8s_fakes import PASSWD, FakeExecutor, exec_failure
from wte_server.app.errors import ShellDetectionError
from wte_server.app.workspaces.operations import ExecOutput
from wte_server.app.workspaces.shell import (
    GET_SHELL_COMMAND,
    GET_USER_ID_COMMAND,
    READ_PASSWD_COMMAND,
    ShellDetector,
    parse_shell_from_passwd,
)


def test_parse_shell_from_passwd():
    assert parse_shell_from_passwd(PASSWD, "1000") == "/bin/zsh"
    assert parse_shell_from_passwd(PASSWD, "0") == "/bin/bash"
    assert parse_shell_from_passwd(PASSWD, "1234") is None


def test_parse_shell_skips_malformed_rows():
    passwd = "broken:x:1000\nuser:x:1000:0:user:/home/user:/bin/fish\n"
    assert parse_shell_from_passwd(passwd, "1000") == "/bin/fish"


def test_parse_shell_matches_uid_field_only():
    passwd = "1000:x:5:0:user:/home/user:/bin/sh\n"
    assert parse_shell_from_passwd(passwd, "1000") is None


def test_shell_env_variable_wins():
    executor = FakeExecutor({GET_SHELL_COMMAND: ExecOutput(stdout="/bin/bash\n", stderr="")})
    assert ShellDetector(executor).detect("pod", "tools") == "/bin/bash"
    assert executor.commands == [GET_SHELL_COMMAND]


def test_empty_shell_env_falls_back_to_passwd():
    executor = FakeExecutor(
        {
            GET_SHELL_COMMAND: ExecOutput(stdout="\n", stderr=""),
            GET_USER_ID_COMMAND: ExecOutput(stdout="1000\n", stderr=""),
            READ_PASSWD_COMMAND: ExecOutput(stdout=PASSWD, stderr=""),
        }
    )
    assert ShellDetector(executor).detect("pod", "tools") == "/bin/zsh"
    assert executor.commands == [GET_SHELL_COMMAND, GET_USER_ID_COMMAND, READ_PASSWD_COMMAND]


def test_failing_shell_env_falls_back_to_passwd():
    executor = FakeExecutor(
        {
            GET_SHELL_COMMAND: exec_failure(),
            GET_USER_ID_COMMAND: ExecOutput(stdout="0", stderr=""),
            READ_PASSWD_COMMAND: ExecOutput(stdout=PASSWD, stderr=""),
        }
    )
    assert ShellDetector(executor).detect("pod", "tools") == "/bin/bash"


def test_user_id_failure():
    executor = FakeExecutor({GET_USER_ID_COMMAND: exec_failure()})
    with pytest.raises(ShellDetectionError, match="failed to get user id"):
        ShellDetector(executor).detect("pod", "tools")


def test_passwd_read_failure():
    executor = FakeExecutor(
        {
            GET_USER_ID_COMMAND: ExecOutput(stdout="1000", stderr=""),
            READ_PASSWD_COMMAND: exec_failure(),
        }
    )
    with pytest.raises(ShellDetectionError, match="failed to read passwd database"):
        ShellDetector(executor).detect("pod", "tools")


def test_uid_without_passwd_entry():
    executor = FakeExecutor(
        {
            GET_USER_ID_COMMAND: ExecOutput(stdout="1001234", stderr=""),
            READ_PASSWD_COMMAND: ExecOutput(stdout=PASSWD, stderr=""),
        }
    )
    with pytest.raises(ShellDetectionError, match="failed to parse shell"):
        ShellDetector(executor).detect("pod", "tools")


def test_uid_in_full_name_field_is_not_matched():
    passwd = "user:x:1234:0:user user:/home/user:/bin/myshell\n"
    assert parse_shell_from_passwd(passwd, "1234") == "/bin/myshell"
    assert parse_shell_from_passwd(passwd, "1") is None
    assert parse_shell_from_passwd("user:x:1234:0:uid 1:/home/user:/bin/sh\n", "1") is None


def test_empty_shell_field_is_not_a_match():
    assert parse_shell_from_passwd("user:x:1234:0:user:/home/user:\n", "1234") is None
