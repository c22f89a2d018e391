"""
Tests for lib/logviewer/cli.py.

Saved logs are read through --log-file; the GitHub and git lookups are
patched out for the fetch path.
"""

import pytest

from logviewer import cli

RAW_LOG = (
    b"2023-05-02T19:31:15.1000000Z TestFoo 2023-05-02T19:31:15Z logger.go:66: starting\n"
    b"2023-05-02T19:31:15.2000000Z TestBar 2023-05-02T19:31:15Z logger.go:66: starting\n"
    b"2023-05-02T19:31:15.2500000Z TestFoo 2023-05-02T19:31:15Z logger.go:66: done\n"
    b"2023-05-02T19:31:15.3000000Z === NAME  TestFoo\n"
    b"2023-05-02T19:31:15.4000000Z     foo_test.go:12: expected 1, got 2\n"
    b"2023-05-02T19:31:15.5000000Z --- FAIL: TestFoo (0.40s)\n"
    b"2023-05-02T19:31:15.6000000Z --- PASS: TestBar (0.50s)\n"
)


@pytest.fixture
def log_file(tmp_path):
    path = tmp_path / "job.log"
    path.write_bytes(RAW_LOG)
    return path


class TestLogFile:
    def test_single_test_without_prefix(self, log_file, capsys):
        assert cli.main(["--log-file", str(log_file), "--test", "TestFoo"]) == 0

        assert capsys.readouterr().out == (
            "2023-05-02T19:31:15Z logger.go:66: starting\n"
            "2023-05-02T19:31:15Z logger.go:66: done\n"
            "=== NAME  TestFoo\n"
            "    foo_test.go:12: expected 1, got 2\n"
            "--- FAIL: TestFoo (0.40s)\n"
            "--- PASS: TestBar (0.50s)\n"
            "\n"
        )

    def test_keep_prefix(self, log_file, capsys):
        assert cli.main(["--log-file", str(log_file), "--test", "TestBar", "--keep-prefix"]) == 0

        assert capsys.readouterr().out == (
            "TestBar 2023-05-02T19:31:15Z logger.go:66: starting\n\n"
        )

    def test_summary(self, log_file, capsys):
        assert cli.main(["--log-file", str(log_file), "--summary"]) == 0

        assert capsys.readouterr().out == (
            "--- FAIL: TestFoo (0.40s)\n--- PASS: TestBar (0.50s)\n\n"
        )

    def test_all_logs_without_test(self, log_file, capsys):
        assert cli.main(["--log-file", str(log_file)]) == 0

        out = capsys.readouterr().out
        assert out.startswith("TestFoo 2023-05-02T19:31:15Z logger.go:66: starting\n")
        assert out.count("\n") == 8

    def test_no_timestamps(self, tmp_path, capsys):
        path = tmp_path / "local.log"
        path.write_bytes(b"TestA 1\ntrace\nTestB 1\n")

        assert cli.main(["--log-file", str(path), "--no-timestamps", "--test", "TestA"]) == 0

        assert capsys.readouterr().out == "1\ntrace\n\n"

    def test_non_utf8_bytes_pass_through(self, tmp_path, capsysbinary):
        path = tmp_path / "latin1.log"
        path.write_bytes(b"TestA caf\xe9\nTestB na\xefve\n")

        assert cli.main(["--log-file", str(path), "--no-timestamps", "--test", "TestA"]) == 0

        assert capsysbinary.readouterr().out == b"caf\xe9\n\n"

    def test_missing_file(self, tmp_path, capsys):
        assert cli.main(["--log-file", str(tmp_path / "missing.log")]) == 1

        assert "failed to read logs" in capsys.readouterr().err

    def test_test_and_summary_are_exclusive(self, log_file):
        with pytest.raises(SystemExit) as exc:
            cli.main(["--log-file", str(log_file), "--test", "TestFoo", "--summary"])
        assert exc.value.code == 2


class TestValidation:
    @pytest.mark.parametrize(
        "argv, message",
        [
            (["--repository", "r", "--workflow", "w.yml", "--job", "j"], "--owner is required"),
            (["--owner", "o", "--workflow", "w.yml", "--job", "j"], "--repository is required"),
            (["--owner", "o", "--repository", "r", "--job", "j"], "--workflow is a required"),
            (["--owner", "o", "--repository", "r", "--workflow", "w.yml"], "--job is a required"),
        ],
    )
    def test_usage_errors(self, argv, message, capsys):
        assert cli.main(argv) == 2
        assert message in capsys.readouterr().err


class TestFetch:
    def test_owner_repo_and_branch_from_git(self, monkeypatch, capsys):
        calls = []

        def fake_get_logs(owner, repo, workflow, branch, job, token):
            calls.append((owner, repo, workflow, branch, job, token))
            return RAW_LOG

        monkeypatch.setattr(cli, "get_remote_owner_and_repo", lambda repo_dir: ("octo", "logs"))
        monkeypatch.setattr(cli, "get_current_branch", lambda repo_dir: "main")
        monkeypatch.setattr(cli, "get_logs", fake_get_logs)
        monkeypatch.setenv("GITHUB_TOKEN", "tok")

        assert cli.main(["--workflow", "test.yml", "--job", "test", "--summary"]) == 0

        assert calls == [("octo", "logs", "test.yml", "main", "test", "tok")]
        assert capsys.readouterr().out.startswith("--- FAIL: TestFoo (0.40s)\n")

    def test_explicit_flags_skip_git(self, monkeypatch, capsys):
        def fail(repo_dir):
            raise AssertionError("git should not be consulted")

        monkeypatch.setattr(cli, "get_remote_owner_and_repo", fail)
        monkeypatch.setattr(cli, "get_current_branch", fail)
        monkeypatch.setattr(cli, "get_logs", lambda *args: b"2023-05-02T19:31:15Z hello")
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)

        argv = ["--owner", "o", "--repository", "r", "--workflow", "w.yml", "--branch", "b", "--job", "j"]
        assert cli.main(argv) == 0

        assert capsys.readouterr().out == "hello\n"

    def test_retrieval_error(self, monkeypatch, capsys):
        def fake_get_logs(*args):
            raise RuntimeError("did not find matching job 'j' in run 1")

        monkeypatch.setattr(cli, "get_logs", fake_get_logs)

        argv = ["--owner", "o", "--repository", "r", "--workflow", "w.yml", "--branch", "b", "--job", "j"]
        assert cli.main(argv) == 1

        assert "did not find matching job" in capsys.readouterr().err

    def test_git_metadata_error(self, monkeypatch, capsys):
        def fake_remote(repo_dir):
            raise ValueError("can't parse owner and repo with 2 remotes; expected exactly one")

        monkeypatch.setattr(cli, "get_remote_owner_and_repo", fake_remote)

        assert cli.main(["--workflow", "w.yml", "--job", "j"]) == 1

        assert "2 remotes" in capsys.readouterr().err
