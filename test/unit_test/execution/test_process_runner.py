"""Unit tests for the shell runner that do not need a real shell."""

from __future__ import annotations

import asyncio
from unittest import mock

import pytest

from toolgate.execution.runner import NO_OUTPUT, CommandHandle, CommandReport, ProcessRunner
from toolgate.schemas.domain import ActionState


class TestCommandReport:
    def test_success_render_shape(self) -> None:
        report = CommandReport(command="echo hello", state=ActionState.closed, exit_code=0, stdout="hello\n")

        lines = report.render().split("\n")

        assert lines[0] == "[TERMINAL REPORT]"
        assert lines[1] == "Command: echo hello"
        assert lines[2] == "Status: SUCCESS"
        assert lines[3] == "Output Length: 6"
        assert lines[4] == "--- OUTPUT ---"
        assert "hello" in lines[5]
        assert report.succeeded is True

    def test_failure_status_carries_exit_code(self) -> None:
        report = CommandReport(command="false", state=ActionState.closed, exit_code=1)

        assert report.status_label == "FAILED (Exit Code: 1)"
        assert report.render().endswith(NO_OUTPUT)
        assert report.succeeded is False

    def test_output_length_counts_utf8_bytes_of_both_streams(self) -> None:
        report = CommandReport(
            command="x", state=ActionState.closed, exit_code=0, stdout="é", stderr="warn"
        )

        assert report.combined_output == "éwarn"
        assert "Output Length: 6" in report.render()

    @pytest.mark.parametrize(
        "state,error,label",
        [
            (ActionState.cancelled, "cancelled", "CANCELLED (cancelled)"),
            (ActionState.cancelled, None, "CANCELLED"),
            (ActionState.errored, "no shell", "ERROR (no shell)"),
        ],
    )
    def test_non_closed_labels(self, state, error, label) -> None:
        report = CommandReport(command="x", state=state, error=error)

        assert report.status_label == label


class TestProcessRunnerEnvironment:
    def test_marker_is_added_over_ambient_and_extra(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AMBIENT_VALUE", "1")
        runner = ProcessRunner(marker_env="MY_AGENT")

        env = runner.build_env({"EXTRA": "x", "MY_AGENT": "0"})

        assert env["AMBIENT_VALUE"] == "1"
        assert env["EXTRA"] == "x"
        assert env["MY_AGENT"] == "1"


class TestProcessRunnerFailures:
    @pytest.mark.asyncio
    async def test_spawn_failure_resolves_to_errored_report(self, tmp_path) -> None:
        runner = ProcessRunner()
        handle = CommandHandle()
        with mock.patch.object(
            asyncio, "create_subprocess_shell", side_effect=FileNotFoundError("no /bin/sh")
        ):
            report = await runner.run("echo hi", cwd=str(tmp_path), handle=handle)

        assert report.state == ActionState.errored
        assert "no /bin/sh" in report.error
        assert handle.state == ActionState.errored

    @pytest.mark.asyncio
    async def test_missing_cwd_resolves_to_errored_report(self, tmp_path) -> None:
        runner = ProcessRunner()

        report = await runner.run("echo hi", cwd=str(tmp_path / "missing"))

        assert report.state == ActionState.errored
        assert report.exit_code is None

    @pytest.mark.asyncio
    async def test_cancel_before_start_never_spawns(self, tmp_path) -> None:
        runner = ProcessRunner()
        handle = CommandHandle()
        handle.cancel()
        with mock.patch.object(asyncio, "create_subprocess_shell") as spawn:
            report = await runner.run("echo hi", cwd=str(tmp_path), handle=handle)

        spawn.assert_not_called()
        assert report.state == ActionState.cancelled
        assert handle.state == ActionState.cancelled
