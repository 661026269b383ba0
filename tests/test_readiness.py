"""Tests for the readiness poller."""

from __future__ import annotations

import httpx

from whisplay_provisioner import readiness
from whisplay_provisioner.readiness import ReadinessCheck, await_ready, command_check

from tests.conftest import FakeRunner


class TestAwaitReady:
    def test_never_ready_probes_exactly_max_attempts(self, no_sleep):
        probes = []

        def probe() -> bool:
            probes.append(1)
            return False

        result = await_ready(ReadinessCheck("ollama", probe, interval_s=1.5, max_attempts=5), sleep=no_sleep)

        assert result.timed_out
        assert result.attempts == 5
        assert len(probes) == 5
        # Sleeps only between probes: never more than 5 x interval.
        assert no_sleep.calls == [1.5] * 4

    def test_returns_on_first_positive_probe(self, no_sleep):
        answers = iter([False, False, True, True])
        result = await_ready(ReadinessCheck("svc", lambda: next(answers), interval_s=2, max_attempts=10), sleep=no_sleep)
        assert result.ready
        assert result.attempts == 3
        assert no_sleep.calls == [2, 2]

    def test_raising_probe_counts_as_not_ready(self, no_sleep):
        calls = []

        def probe() -> bool:
            calls.append(1)
            if len(calls) < 2:
                raise ConnectionError("refused")
            return True

        result = await_ready(ReadinessCheck("svc", probe, interval_s=0, max_attempts=3), sleep=no_sleep)
        assert result.ready
        assert result.attempts == 2

    def test_fixed_interval_no_backoff(self, no_sleep):
        await_ready(ReadinessCheck("svc", lambda: False, interval_s=3, max_attempts=4), sleep=no_sleep)
        assert set(no_sleep.calls) == {3}


class TestProbes:
    def test_command_check_uses_exit_code(self, monkeypatch, no_sleep):
        runner = FakeRunner({("systemctl", "is-active"): (3, "")})
        monkeypatch.setattr(readiness, "run_cmd", runner)

        check = command_check("whisplay", ["systemctl", "is-active", "whisplay"], interval_s=0, max_attempts=2)
        result = await_ready(check, sleep=no_sleep)

        assert result.timed_out
        assert runner.calls == [["systemctl", "is-active", "whisplay"]] * 2

    def test_http_probe_treats_5xx_as_not_ready(self, monkeypatch):
        statuses = iter([503, 200])
        real_client = httpx.Client

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/tags"
            return httpx.Response(next(statuses))

        monkeypatch.setattr(
            readiness.httpx,
            "Client",
            lambda **kw: real_client(transport=httpx.MockTransport(handler), **kw),
        )

        probe = readiness.http_probe("http://127.0.0.1:11434/api/tags")
        assert probe() is False
        assert probe() is True

    def test_http_probe_connection_error_is_false(self, monkeypatch):
        real_client = httpx.Client

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        monkeypatch.setattr(
            readiness.httpx,
            "Client",
            lambda **kw: real_client(transport=httpx.MockTransport(handler), **kw),
        )

        assert readiness.http_probe("http://127.0.0.1:11434/api/tags")() is False
