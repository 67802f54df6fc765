"""Tests for the CLI implementation."""

import json

import pytest
from typer.testing import CliRunner

from adlstore.cli import app
from adlstore.logger import log


class TestCLI:
    """Commands against the fake store."""

    @pytest.fixture
    def runner(self, monkeypatch):
        """CLI test runner."""
        monkeypatch.delenv("ADLSTORE_ACCOUNT", raising=False)
        monkeypatch.delenv("ADLSTORE_TOKEN", raising=False)
        return CliRunner()

    @pytest.fixture
    def invoke(self, runner, store, tmp_path):
        base = ["--account", store.account, "--token", "t", "--scheme", "http",
                "--config", str(tmp_path / "none.ini")]

        def run(*args, **kwargs):
            return runner.invoke(app, base + list(args), **kwargs)
        return run

    def test_ls(self, store, invoke):
        store.put_file("/d/a", b"1")
        store.put_file("/d/b", b"22")

        result = invoke("ls", "/d", "--fields", "name,length")

        assert result.exit_code == 0
        lines = [json.loads(ln) for ln in result.stdout.strip().splitlines()]
        assert lines == [{"name": "a", "length": 1}, {"name": "b", "length": 2}]

    def test_stat(self, store, invoke):
        store.put_file("/f", b"abc")
        result = invoke("stat", "/f")

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["type"] == "FILE"
        assert payload["full_name"] == "/f"
        assert payload["last_modified_time"].startswith("2020-09-13")

        summary = json.loads(invoke("stat", "/", "--summary").stdout)
        assert summary["file_count"] == 1

    def test_missing_path_exits_nonzero(self, store, invoke):
        result = invoke("stat", "/missing")

        assert result.exit_code == 1
        payload = json.loads(result.stdout)
        assert payload["success"] is False
        assert payload["type"] == "PathNotFoundError"
        assert payload["status_code"] == 404

    def test_cat(self, store, invoke):
        store.put_file("/f", bytes(range(256)))
        result = invoke("cat", "/f")
        assert result.exit_code == 0
        assert result.stdout_bytes == bytes(range(256))

    def test_put_get(self, store, invoke, tmp_path):
        src = tmp_path / "in.txt"
        src.write_bytes(b"payload")
        result = invoke("put", str(src), "/up.txt")
        assert result.exit_code == 0
        assert json.loads(result.stdout)["bytes"] == 7

        assert invoke("put", str(src), "/up.txt").exit_code == 1
        assert invoke("put", str(src), "/up.txt", "--overwrite").exit_code == 0

        dst = tmp_path / "out.txt"
        result = invoke("get", "/up.txt", str(dst))
        assert result.exit_code == 0
        assert dst.read_bytes() == b"payload"

    def test_append(self, store, invoke):
        assert invoke("append", "/log", input=b"one\n").exit_code == 0
        assert invoke("append", "/log", input=b"two\n").exit_code == 0
        assert store.files["/log"] == b"one\ntwo\n"

    def test_mkdir_mv_rm(self, store, invoke):
        assert invoke("mkdir", "/a/b", "-p", "700").exit_code == 0
        assert store.meta["/a/b"]["permission"] == "700"
        assert invoke("mv", "/a/b", "/a/c").exit_code == 0
        assert "/a/c" in store.dirs
        assert invoke("rm", "/a").exit_code == 1
        assert invoke("rm", "-r", "/a").exit_code == 0
        assert "/a" not in store.dirs

    def test_concat(self, store, invoke):
        store.put_file("/p/1", b"x")
        store.put_file("/p/2", b"y")
        result = invoke("concat", "/joined", "/p/1", "/p/2")
        assert result.exit_code == 0
        assert store.files["/joined"] == b"xy"

    def test_acl_commands(self, store, invoke):
        store.put_file("/f", b"")
        assert invoke("setacl", "/f", "user:bob:r-x").exit_code == 0
        assert invoke("setacl", "/f", "user:eve:rw-", "--modify").exit_code == 0

        payload = json.loads(invoke("getacl", "/f").stdout)
        assert payload["entries"] == ["user:bob:r-x", "user:eve:rw-"]
        assert payload["owner"] == "owner"

        assert invoke("setacl", "/f", "user:bob").exit_code == 1

    def test_access(self, store, invoke):
        store.put_file("/f", b"")
        result = invoke("access", "/f", "r--")
        assert result.exit_code == 0
        assert json.loads(result.stdout)["allowed"] is True

        store.denied.add("/f")
        result = invoke("access", "/f", "r--")
        assert result.exit_code == 1
        assert json.loads(result.stdout)["allowed"] is False

    def test_no_account(self, runner, tmp_path):
        result = runner.invoke(app, ["--config", str(tmp_path / "none.ini"), "ls", "/"])
        assert result.exit_code == 1
        assert json.loads(result.stdout)["type"] == "ArgumentError"

    def test_verbose_logs_requests(self, store, invoke):
        handlers = list(log.handlers)
        level = log.level
        try:
            result = invoke("--verbose", "ls", "/")
        finally:
            log.handlers[:] = handlers
            log.setLevel(level)
        assert result.exit_code == 0
