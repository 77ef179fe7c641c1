"""Tests for dependency installation"""
import subprocess
from unittest.mock import patch

from git_worktree_keeper.services.installer import INSTALL_ENV, DependencyInstaller


class TestDetect:
    """Test package manager detection."""

    def test_nothing_to_install(self, temp_dir):
        assert DependencyInstaller.detect(str(temp_dir)) is None

    def test_lock_files(self, temp_dir):
        (temp_dir / "package.json").write_text("{}")
        assert DependencyInstaller.detect(str(temp_dir)) == "npm"

        (temp_dir / "yarn.lock").write_text("")
        assert DependencyInstaller.detect(str(temp_dir)) == "yarn"

        (temp_dir / "pnpm-lock.yaml").write_text("")
        assert DependencyInstaller.detect(str(temp_dir)) == "pnpm"


class TestInstall:
    """Test running the package manager."""

    def test_skips_without_manifest(self, temp_dir):
        with patch("git_worktree_keeper.services.installer.subprocess.run") as mock_run:
            result = DependencyInstaller().install(str(temp_dir))
        assert not result.ran
        assert result.success
        mock_run.assert_not_called()

    def test_runs_install(self, temp_dir):
        (temp_dir / "package.json").write_text("{}")
        (temp_dir / "yarn.lock").write_text("")
        with patch("git_worktree_keeper.services.installer.shutil.which", return_value="/usr/bin/yarn"), \
                patch("git_worktree_keeper.services.installer.subprocess.run") as mock_run:
            result = DependencyInstaller(timeout=12).install(str(temp_dir))

        assert result.ran and result.success
        assert result.package_manager == "yarn"
        args, kwargs = mock_run.call_args
        assert args[0] == ["yarn", "install"]
        assert kwargs["cwd"] == str(temp_dir)
        assert kwargs["timeout"] == 12
        for key, value in INSTALL_ENV.items():
            assert kwargs["env"][key] == value

    def test_falls_back_to_npm(self, temp_dir):
        (temp_dir / "pnpm-lock.yaml").write_text("")

        def which(name):
            return "/usr/bin/npm" if name == "npm" else None

        with patch("git_worktree_keeper.services.installer.shutil.which", side_effect=which), \
                patch("git_worktree_keeper.services.installer.subprocess.run") as mock_run:
            result = DependencyInstaller().install(str(temp_dir))

        assert result.package_manager == "npm"
        assert mock_run.call_args[0][0] == ["npm", "install"]

    def test_no_package_manager(self, temp_dir):
        (temp_dir / "package.json").write_text("{}")
        with patch("git_worktree_keeper.services.installer.shutil.which", return_value=None):
            result = DependencyInstaller().install(str(temp_dir))
        assert not result.ran
        assert not result.success

    def test_timeout_is_reported(self, temp_dir):
        (temp_dir / "package.json").write_text("{}")
        error = subprocess.TimeoutExpired(cmd="npm install", timeout=1)
        with patch("git_worktree_keeper.services.installer.shutil.which", return_value="/usr/bin/npm"), \
                patch("git_worktree_keeper.services.installer.subprocess.run", side_effect=error):
            result = DependencyInstaller(timeout=1).install(str(temp_dir))

        assert result.timed_out
        assert not result.success
        assert "timed out" in result.message

    def test_failure_is_reported(self, temp_dir):
        (temp_dir / "package.json").write_text("{}")
        error = subprocess.CalledProcessError(1, "npm", stderr="npm ERR! one\nnpm ERR! last line\n")
        with patch("git_worktree_keeper.services.installer.shutil.which", return_value="/usr/bin/npm"), \
                patch("git_worktree_keeper.services.installer.subprocess.run", side_effect=error):
            result = DependencyInstaller().install(str(temp_dir))

        assert not result.success
        assert result.message.endswith("npm ERR! last line")
