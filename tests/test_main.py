"""Tests for the CLI entry point and the run record."""

from __future__ import annotations

import json

import pytest

from whisplay_provisioner import main as cli
from whisplay_provisioner.errors import ConfigurationError
from whisplay_provisioner.pipeline import Summary
from whisplay_provisioner.state_store import load_state, record_run, save_state

from tests.conftest import FakeResource


@pytest.fixture
def wired(monkeypatch, ctx):
    """Route main() at the test context with a small fake catalog."""

    fakes = {"a": FakeResource(present=True), "b": FakeResource(), "c": FakeResource()}

    monkeypatch.setattr(cli, "configure_logging", lambda **kw: None)
    monkeypatch.setattr(cli, "resolve", lambda cfg: ctx)
    monkeypatch.setattr(
        cli,
        "build_resources",
        lambda c, cfg: [f.descriptor(rid, fatal=(rid == "b")) for rid, f in fakes.items()],
    )
    return fakes


class TestMain:
    def test_successful_run_writes_record(self, wired, ctx):
        assert cli.main([]) == cli.EXIT_OK

        state = json.loads(ctx.default_state_path.read_text())
        assert state["last_run"]["applied"] == ["b", "c"]
        assert state["last_run"]["converged"] == ["a"]
        assert state["last_run"]["user"] == "pi5ai"
        assert len(state["runs"]) == 1

    def test_fatal_failure_exit_code(self, wired, ctx):
        wired["b"].error = RuntimeError("apt lock held")

        assert cli.main([]) == cli.EXIT_FATAL

        state = json.loads(ctx.default_state_path.read_text())
        assert state["last_run"]["fatal_error"].startswith("[b]")
        assert wired["c"].applies == 0

    def test_dry_run_changes_nothing(self, wired, ctx):
        assert cli.main(["--dry-run"]) == cli.EXIT_OK
        assert all(f.applies == 0 for f in wired.values())
        assert load_state(str(ctx.default_state_path))["last_run"]["planned"] == ["b", "c"]

    def test_corrupt_run_record_is_replaced(self, wired, tmp_path):
        state_path = tmp_path / "state.json"
        state_path.write_text("{not json", encoding="utf-8")

        assert cli.main(["--state", str(state_path)]) == cli.EXIT_OK

        state = json.loads(state_path.read_text())
        assert state["last_run"]["applied"] == ["b", "c"]
        assert len(state["runs"]) == 1

    def test_corrupt_yaml_run_record_is_replaced(self, wired, tmp_path):
        state_path = tmp_path / "state.yaml"
        state_path.write_text("runs: [unclosed\n", encoding="utf-8")

        assert cli.main(["--state", str(state_path)]) == cli.EXIT_OK
        assert load_state(str(state_path))["last_run"]["converged"] == ["a"]

    def test_start_at_and_stop_after(self, wired):
        assert cli.main(["--start-at", "c", "--stop-after", "c"]) == cli.EXIT_OK
        assert wired["b"].applies == 0
        assert wired["c"].applies == 1

    def test_unknown_resource_is_config_error(self, wired):
        assert cli.main(["--start-at", "nope"]) == cli.EXIT_CONFIG

    def test_configuration_error_exit_code(self, monkeypatch):
        def refuse(cfg):
            raise ConfigurationError("Run this as a normal non-root user")

        monkeypatch.setattr(cli, "configure_logging", lambda **kw: None)
        monkeypatch.setattr(cli, "resolve", refuse)
        assert cli.main(["--user", "pi5ai"]) == cli.EXIT_CONFIG

    def test_list(self, wired, capsys):
        assert cli.main(["--list"]) == cli.EXIT_OK
        out = capsys.readouterr().out.splitlines()
        assert [line.split()[0] for line in out] == ["a", "b", "c"]
        assert "fatal" in out[1]


class TestRunRecord:
    def test_history_is_bounded(self, ctx, tmp_path):
        path = str(tmp_path / "state.yaml")
        state = {}
        for _ in range(25):
            state = record_run(state, ctx, Summary(applied=["x"]))
        save_state(path, state)

        loaded = load_state(path)
        assert len(loaded["runs"]) == 20
        assert loaded["last_run"]["applied"] == ["x"]
        assert loaded["runs"][-1]["applied"] == 1
