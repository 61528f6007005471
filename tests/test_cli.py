import json
import sys

import pytest

from blade_core.__main__ import main


@pytest.fixture
def run_cli(monkeypatch, capsys, workspace, tmp_path):
    def run(*args):
        argv = [
            "blade-core",
            "--target-dir",
            str(workspace),
            "--config-dir",
            str(tmp_path / "config"),
            *args,
        ]
        monkeypatch.setattr(sys, "argv", argv)
        code = main()
        return code, capsys.readouterr()

    return run


class TestPermissionsCommand:
    def test_add_then_list(self, run_cli, workspace):
        code, out = run_cli("permissions", "add", "deny", "run_shell_command(command:rm *)")
        assert code == 0
        assert "Added deny rule" in out.out

        code, out = run_cli("permissions", "list")
        assert code == 0
        assert json.loads(out.out)["deny"] == ["run_shell_command(command:rm *)"]
        assert (workspace / ".blade" / "permissions.json").exists()

    def test_invalid_rule_exits_with_error(self, run_cli):
        code, out = run_cli("permissions", "add", "allow", "Bash(")
        assert code == 1
        assert "Error" in out.err

    def test_check_reports_effective_decision(self, run_cli):
        run_cli("permissions", "add", "deny", "run_shell_command(command:rm *)")

        code, out = run_cli(
            "permissions", "check", "run_shell_command", "--param", "command=rm -rf build"
        )
        report = json.loads(out.out)
        assert code == 0
        assert report["decision"] == "deny"
        assert report["matched_rule"] == "run_shell_command(command:rm *)"

        _, out = run_cli(
            "permissions",
            "check",
            "run_shell_command",
            "--param",
            "command=rm -rf build",
            "--mode",
            "yolo",
        )
        report = json.loads(out.out)
        assert report["effective_decision"] == "allow"
        assert report["override"] == "mode:yolo"

    def test_check_read_only_tool(self, run_cli):
        _, out = run_cli("permissions", "check", "read_file", "--path", "src/app.py")
        report = json.loads(out.out)
        assert report["kind"] == "readonly"
        assert report["decision"] == "ask"
        assert report["effective_decision"] == "allow"
        assert report["confirmation_exempt"] is True


class TestToolsCommand:
    def test_list(self, run_cli):
        code, out = run_cli("tools", "list")
        assert code == 0
        assert "run_shell_command" in out.out
        assert "read_file" in out.out

    def test_list_in_plan_mode(self, run_cli):
        _, out = run_cli("tools", "list", "--mode", "plan")
        names = [line.split()[0] for line in out.out.splitlines()]
        assert names == ["read_file", "exit_plan_mode"]
