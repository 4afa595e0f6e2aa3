"""Tests for the built-in actions."""

import os
import shutil
import subprocess

import pytest

from wheelci.actions import checkout, dev_drive, permissions, transfer
from wheelci.errors import CIError
from wheelci.model import InvocationInputs
from wheelci.runner import build_context


@pytest.fixture
def ctx(workspace, store):
    inputs = InvocationInputs(sha="abc123", arch="linux-64", runs_on="ubuntu-latest")
    return build_context(inputs, workspace=workspace, store=store)


class TestTransfer:
    def test_download_into_release_dir(self, ctx, seed_binary):
        name = seed_binary("linux-64", "abc123")

        transfer.download(ctx, {"name": name, "path": str(ctx.bindings.target_release)})

        assert (ctx.bindings.target_release / "pixi").is_file()

    def test_download_missing_artifact(self, ctx):
        with pytest.raises(CIError) as exc:
            transfer.download(ctx, {"name": "pixi-linux-64-abc123", "path": str(ctx.bindings.target_release)})
        assert exc.value.kind == "artifact_not_found"

    def test_download_requires_name(self, ctx):
        with pytest.raises(CIError) as exc:
            transfer.download(ctx, {"path": "x"})
        assert exc.value.kind == "invalid_params"

    def test_upload_includes_hidden_files(self, ctx):
        logs = ctx.bindings.logs_dir
        logs.mkdir(parents=True)
        (logs / ".pixi-install.log").write_text("done\n")

        transfer.upload(ctx, {"name": ctx.logs_artifact, "path": str(logs), "include_hidden_files": True})

        files = [f["path"] for f in ctx.store.manifest(ctx.logs_artifact)["files"]]
        assert files == [".pixi-install.log"]

    def test_upload_without_files_warns(self, ctx, capsys):
        transfer.upload(ctx, {"name": ctx.logs_artifact, "path": str(ctx.bindings.logs_dir)})

        assert "No files were found" in capsys.readouterr().out
        assert not ctx.store.exists(ctx.logs_artifact)

    def test_flag_parsing(self):
        assert transfer._flag("true")
        assert not transfer._flag("false")
        assert transfer._flag(True)


class TestPermissions:
    @pytest.mark.skipif(os.name != "posix", reason="POSIX permission bits")
    def test_marks_every_entry_executable(self, ctx):
        release = ctx.bindings.target_release
        release.mkdir(parents=True)
        for name in ("pixi", "pixi-helper"):
            (release / name).write_text("bin")
            os.chmod(release / name, 0o644)

        permissions.make_executable(ctx, {"path": str(release)})

        for name in ("pixi", "pixi-helper"):
            assert os.stat(release / name).st_mode & 0o111 == 0o111

    def test_empty_release_dir_fails(self, ctx):
        with pytest.raises(CIError) as exc:
            permissions.make_executable(ctx, {"path": str(ctx.bindings.target_release)})
        assert exc.value.kind == "chmod_failed"


class TestCopyTree:
    def test_copies_workspace(self, ctx, tmp_path):
        (ctx.workspace / "pixi.toml").write_text("[workspace]\n")
        dest = tmp_path / "devdrive" / "pixi_workspace"

        dev_drive.copy_tree(ctx, {"source": str(ctx.workspace), "destination": str(dest)})

        assert (dest / "pixi.toml").read_text() == "[workspace]\n"

    def test_unset_destination(self, ctx):
        with pytest.raises(CIError) as exc:
            dev_drive.copy_tree(ctx, {"source": str(ctx.workspace), "destination": "${PIXI_WORKSPACE}"})
        assert exc.value.kind == "missing_env"

    def test_destination_inside_source(self, ctx):
        with pytest.raises(CIError) as exc:
            dev_drive.copy_tree(ctx, {"source": str(ctx.workspace), "destination": str(ctx.workspace / "copy")})
        assert exc.value.kind == "copy_failed"


class TestCheckout:
    @pytest.fixture(autouse=True)
    def local_machine(self, monkeypatch):
        monkeypatch.delenv("GITHUB_ACTIONS", raising=False)

    @pytest.fixture
    def git_calls(self, monkeypatch):
        calls = []

        def fake_git(args, cwd=None):
            calls.append(args)
            if args[:1] == ["rev-parse"]:
                return "abc123"
            return ""

        monkeypatch.setattr(checkout.git, "_git", fake_git)
        return calls

    def test_existing_repository(self, ctx, git_calls):
        (ctx.workspace / ".git").mkdir()

        checkout.run(ctx, {"ref": "abc123"})

        assert git_calls == [
            ["status", "--porcelain", "--untracked-files=no"],
            ["fetch", "--no-tags", "origin", "abc123"],
            ["checkout", "--force", "--detach", "abc123"],
            ["rev-parse", "HEAD"],
        ]

    def test_fetch_failure_falls_back_to_local_objects(self, ctx, monkeypatch):
        (ctx.workspace / ".git").mkdir()
        calls = []

        def fake_git(args, cwd=None):
            calls.append(args[0])
            if args[0] == "fetch":
                raise subprocess.CalledProcessError(128, ["git", *args], output="no remote")
            return "abc123"

        monkeypatch.setattr(checkout.git, "_git", fake_git)

        checkout.run(ctx, {"ref": "abc123", "force": True})

        assert calls == ["fetch", "checkout", "rev-parse"]

    def test_initialises_from_repository(self, ctx, git_calls):
        ctx.repository = "https://github.com/prefix-dev/pixi.git"

        checkout.run(ctx, {"ref": "abc123"})

        assert git_calls[:3] == [
            ["init", "--quiet"],
            ["remote", "add", "origin", "https://github.com/prefix-dev/pixi.git"],
            ["fetch", "--no-tags", "origin", "abc123"],
        ]

    def test_no_repository_and_no_clone(self, ctx, git_calls):
        with pytest.raises(CIError) as exc:
            checkout.run(ctx, {"ref": "abc123"})
        assert exc.value.kind == "checkout_failed"
        assert git_calls == []

    def test_checkout_failure(self, ctx, monkeypatch):
        (ctx.workspace / ".git").mkdir()

        def fake_git(args, cwd=None):
            if args[0] == "checkout":
                raise subprocess.CalledProcessError(1, ["git", *args], output="reference is not a tree")
            return ""

        monkeypatch.setattr(checkout.git, "_git", fake_git)

        with pytest.raises(CIError) as exc:
            checkout.run(ctx, {"ref": "abc123"})
        assert "reference is not a tree" in exc.value.details["output"]

    def test_git_missing(self, ctx, monkeypatch):
        (ctx.workspace / ".git").mkdir()

        def fake_git(args, cwd=None):
            raise FileNotFoundError("git")

        monkeypatch.setattr(checkout.git, "_git", fake_git)

        with pytest.raises(CIError) as exc:
            checkout.run(ctx, {"ref": "abc123"})
        assert exc.value.kind == "tool_unavailable"

    def test_dirty_tree_is_refused(self, ctx, monkeypatch):
        (ctx.workspace / ".git").mkdir()
        calls = []

        def fake_git(args, cwd=None):
            calls.append(args[0])
            return " M pixi.toml" if args[0] == "status" else ""

        monkeypatch.setattr(checkout.git, "_git", fake_git)

        with pytest.raises(CIError) as exc:
            checkout.run(ctx, {"ref": "abc123"})
        assert exc.value.kind == "checkout_failed"
        assert "pixi.toml" in exc.value.details["changes"]
        assert calls == ["status"]

    def test_force_checkout_setting_skips_dirty_check(self, ctx, git_calls):
        (ctx.workspace / ".git").mkdir()
        ctx.force_checkout = True

        checkout.run(ctx, {"ref": "abc123"})

        assert ["status", "--porcelain", "--untracked-files=no"] not in git_calls

    def test_github_actions_runner_skips_dirty_check(self, ctx, git_calls, monkeypatch):
        (ctx.workspace / ".git").mkdir()
        monkeypatch.setenv("GITHUB_ACTIONS", "true")

        checkout.run(ctx, {"ref": "abc123"})

        assert git_calls[0][0] == "fetch"

    @pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
    def test_uncommitted_work_survives(self, ctx):
        ws = ctx.workspace

        def git_(*args):
            return subprocess.check_output(
                ["git", "-c", "user.name=wheelci", "-c", "user.email=wheelci@example.com", *args],
                cwd=ws,
                text=True,
            ).strip()

        git_("init", "--quiet")
        (ws / "f.txt").write_text("committed\n")
        git_("add", "f.txt")
        git_("commit", "--quiet", "-m", "init")
        head = git_("rev-parse", "HEAD")
        (ws / "f.txt").write_text("uncommitted work\n")

        with pytest.raises(CIError) as exc:
            checkout.run(ctx, {"ref": head})

        assert exc.value.kind == "checkout_failed"
        assert (ws / "f.txt").read_text() == "uncommitted work\n"
