"""Tests for the host adapters in whisplay_provisioner.lib."""

from __future__ import annotations

import os
from pathlib import Path

import httpx
import pytest

from whisplay_provisioner.lib import assets, command, pkg

from tests.conftest import FakeRunner


class TestCommand:
    def test_missing_executable_is_127(self):
        r = command.run_cmd(["definitely-not-a-real-binary-xyz"], check=False)
        assert r.returncode == 127
        assert not r.ok

    def test_missing_executable_raises_when_checked(self):
        with pytest.raises(command.CommandError) as exc:
            command.run_cmd(["definitely-not-a-real-binary-xyz"])
        assert exc.value.returncode == 127

    def test_fmt_argv_quotes(self):
        assert command.fmt_argv(["echo", "a b"]) == "echo 'a b'"


class TestPkg:
    def test_dpkg_installed(self, monkeypatch):
        runner = FakeRunner(
            {
                ("dpkg-query", "-W", "-f=${Status}", "git"): (0, "install ok installed"),
                ("dpkg-query", "-W", "-f=${Status}", "piper"): (0, "deinstall ok config-files"),
                ("dpkg-query", "-W", "-f=${Status}", "sox"): (1, ""),
            }
        )
        monkeypatch.setattr(pkg, "run_cmd", runner)

        assert pkg.dpkg_installed("git")
        assert not pkg.dpkg_installed("piper")
        assert pkg.missing_packages(["git", "sox", "piper"]) == ["sox", "piper"]

    def test_apt_install_is_noninteractive(self, monkeypatch):
        seen = {}

        def sudo(argv, **kw):
            seen["argv"] = list(argv)
            seen["env"] = kw.get("env")

        monkeypatch.setattr(pkg, "sudo_cmd", sudo)
        pkg.apt_install(["git", "sox"])
        assert seen["argv"] == ["apt-get", "install", "-y", "git", "sox"]
        assert seen["env"] == {"DEBIAN_FRONTEND": "noninteractive"}

    def test_apt_install_nothing(self, monkeypatch):
        runner = FakeRunner()
        monkeypatch.setattr(pkg, "sudo_cmd", runner.sudo)
        pkg.apt_install([])
        assert runner.calls == []

    def test_pip_install_argv(self, monkeypatch, tmp_path: Path):
        runner = FakeRunner()
        monkeypatch.setattr(pkg, "run_cmd", runner)

        pkg.pip_install(["soundfile"], upgrade=True)
        pkg.pip_install(requirements=tmp_path / "requirements.txt")
        pkg.pip_install()

        assert runner.calls == [
            ["python3", "-m", "pip", "install", "--break-system-packages", "--upgrade", "soundfile"],
            [
                "python3", "-m", "pip", "install", "--break-system-packages",
                "-r", str(tmp_path / "requirements.txt"),
            ],
        ]


class TestAssets:
    def test_read_missing_is_empty(self, tmp_path: Path):
        assert assets.read_text_or_empty(tmp_path / "nope") == ""

    def test_write_file_preserves_crlf(self, tmp_path: Path):
        target = tmp_path / "sub" / "app.env"
        assets.write_file(target, "A=1\r\nB=2\r\n")
        assert target.read_bytes() == b"A=1\r\nB=2\r\n"
        assert assets.read_text_or_empty(target) == "A=1\r\nB=2\r\n"

    def test_copy_missing_source(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            assets.copy_file(tmp_path / "absent", tmp_path / "dst")

    def test_symlink_repoints(self, tmp_path: Path):
        a = tmp_path / "a"
        b = tmp_path / "b"
        a.write_text("a")
        b.write_text("b")
        link = tmp_path / "bin" / "piper"

        assets.ensure_symlink(link, a)
        assert assets.symlink_points_to(link, a)
        assets.ensure_symlink(link, b)
        assert assets.symlink_points_to(link, b)
        assert os.readlink(link) == str(b)

    def test_download_leaves_no_partial_file(self, monkeypatch, tmp_path: Path):
        real_client = httpx.Client

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404)

        monkeypatch.setattr(
            assets.httpx,
            "Client",
            lambda **kw: real_client(transport=httpx.MockTransport(handler), **kw),
        )

        dest = tmp_path / "voices" / "amy.onnx"
        with pytest.raises(httpx.HTTPStatusError):
            assets.download("https://example.invalid/amy.onnx", dest)
        assert not dest.exists()
        assert not dest.with_name("amy.onnx.part").exists()

    def test_download_writes_body(self, monkeypatch, tmp_path: Path):
        real_client = httpx.Client
        monkeypatch.setattr(
            assets.httpx,
            "Client",
            lambda **kw: real_client(
                transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"onnx")), **kw
            ),
        )

        dest = tmp_path / "amy.onnx"
        assets.download("https://example.invalid/amy.onnx", dest)
        assert dest.read_bytes() == b"onnx"
