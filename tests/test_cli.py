"""
CLI tests - run `main(argv)` against a stubbed client and check the JSON output.
"""

import json

import pytest

from polarion_ws import cli
from polarion_ws.core.errors import AuthError
from stubs import fault_response, operation_response

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def run_cli(monkeypatch, capsys, polarion):
    """Run the CLI with the stubbed client; return (exit_code, parsed stdout)."""
    monkeypatch.setattr(cli, "create_client", lambda _args: polarion)

    def _run(*argv: str) -> tuple[int, object]:
        exit_code = 0
        try:
            cli.main(list(argv))
        except SystemExit as e:
            exit_code = e.code or 0
        out = capsys.readouterr().out
        return exit_code, json.loads(out) if out.strip() else None

    return _run


# =============================================================================
# Commands
# =============================================================================


class TestCommands:
    def test_session_check(self, run_cli, transport):
        transport.queue(operation_response("session", "hasSubject", "true"))
        code, data = run_cli("session", "check")
        assert code == 0
        assert data == {"logged_in": True, "username": "jdoe"}

    def test_wi_get(self, run_cli, transport):
        transport.queue(operation_response("tracker", "getWorkItemById", "<id>P-1</id><title>T</title>"))
        code, data = run_cli("wi", "get", "P", "P-1")
        assert code == 0
        assert data["id"] == "P-1"
        assert data["title"] == "T"

    def test_wi_query_passes_sort_and_fields(self, run_cli, transport):
        transport.queue(operation_response("tracker", "queryWorkItems", "<id>P-1</id>"))
        code, data = run_cli("wi", "query", "type:task", "--sort", "id", "-f", "id", "-f", "title")
        assert code == 0
        assert data["total_count"] == 1
        assert transport.requests[-1].params()["fields"] == ["id", "title"]

    def test_wi_query_fields_without_sort_is_rejected(self, run_cli, transport):
        calls_before = transport.call_count
        code, data = run_cli("wi", "query", "type:task", "-f", "id")
        assert code == 1
        assert data["kind"] == "ValidationError"
        assert transport.call_count == calls_before

    def test_wi_count(self, run_cli, transport):
        transport.queue(operation_response("tracker", "getWorkItemsCount", "5"))
        code, data = run_cli("wi", "count", "type:task")
        assert data == {"query": "type:task", "count": 5}

    def test_records_query_limit(self, run_cli, transport):
        transport.queue(operation_response("test", "searchTestRecords"))
        code, data = run_cli("records", "query", "project.id:P", "--limit", "3")
        assert code == 0
        assert data == {"data": [], "total_count": 0}
        assert transport.requests[-1].params()["limit"] == ["3"]

    def test_remote_error_prints_error_and_exits_1(self, run_cli, transport):
        transport.queue(fault_response("Boom"), status=500)
        code, data = run_cli("testrun", "get", "P", "R1")
        assert code == 1
        assert data["kind"] == "RemoteOperationError"
        assert data["operation"] == "getTestRunById"
        assert "Boom" in data["error"]

    def test_client_is_closed_after_command(self, run_cli, transport, polarion, monkeypatch):
        closed = []
        monkeypatch.setattr(polarion, "close", lambda: closed.append(True))
        transport.queue(operation_response("tracker", "getWorkItemsCount", "1"))
        run_cli("wi", "count", "x")
        assert closed == [True]


class TestLoginFailureOutput:
    def test_auth_error_exits_1_with_step(self, monkeypatch, capsys):
        def _fail(_args):
            raise AuthError("Failed to make login request: response status 500", step="status", status=500)

        monkeypatch.setattr(cli, "create_client", _fail)
        with pytest.raises(SystemExit) as excinfo:
            cli.main(["wi", "count", "x"])

        assert excinfo.value.code == 1
        data = json.loads(capsys.readouterr().out)
        assert data["step"] == "status"
        assert data["status"] == 500


class TestParser:
    def test_no_command_prints_help(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            cli.main([])
        assert excinfo.value.code == 0
        assert "polarion-ws" in capsys.readouterr().out

    def test_insecure_flag_disables_verification(self, monkeypatch):
        captured = {}

        def _from_env(**kwargs):
            captured.update(kwargs)
            raise AuthError("stop", step="transport")

        monkeypatch.setattr(cli.Polarion, "from_env", staticmethod(_from_env))
        args = cli.create_parser().parse_args(["--insecure", "--url", "https://x.test", "wi", "count", "q"])

        with pytest.raises(AuthError):
            cli.create_client(args)
        assert captured["verify_tls"] is False
        assert captured["base_url"] == "https://x.test"

    def test_verify_tls_left_to_env_without_flag(self, monkeypatch):
        captured = {}

        def _from_env(**kwargs):
            captured.update(kwargs)
            raise AuthError("stop", step="transport")

        monkeypatch.setattr(cli.Polarion, "from_env", staticmethod(_from_env))
        args = cli.create_parser().parse_args(["wi", "count", "q"])

        with pytest.raises(AuthError):
            cli.create_client(args)
        assert captured["verify_tls"] is None

    @pytest.mark.parametrize("group", ["session", "wi", "testrun", "records"])
    def test_group_without_subcommand_prints_help_without_login(self, monkeypatch, capsys, group):
        def _no_login(_args):
            raise AssertionError("help must not log in")

        monkeypatch.setattr(cli, "create_client", _no_login)
        cli.main([group])

        assert f"polarion-ws {group}" in capsys.readouterr().out
