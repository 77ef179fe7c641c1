"""Dependency installation for freshly created worktrees."""

import os
import shutil
import subprocess
from typing import Optional

from rich.console import Console

from git_worktree_keeper.constants import DEFAULT_INSTALL_TIMEOUT, LOCK_FILES, MANIFEST_FILE
from git_worktree_keeper.logging_config import get_logger
from git_worktree_keeper.models.reports import InstallResult

console = Console()
logger = get_logger(__name__)

FALLBACK_PACKAGE_MANAGER = "npm"

INSTALL_ENV = {
    "CI": "true",
    "npm_config_audit": "false",
    "npm_config_fund": "false",
}


class DependencyInstaller:
    """Installs JavaScript dependencies when a worktree has a manifest."""

    def __init__(self, timeout: int = DEFAULT_INSTALL_TIMEOUT):
        self.timeout = timeout

    @staticmethod
    def detect(path: str) -> Optional[str]:
        """
        Pick the package manager for a directory.

        Lock files decide (pnpm, then yarn, then npm); a bare manifest means
        npm. No manifest and no lock file means there is nothing to install.
        """
        for lock_file, manager in LOCK_FILES:
            if os.path.isfile(os.path.join(path, lock_file)):
                return manager
        if os.path.isfile(os.path.join(path, MANIFEST_FILE)):
            return FALLBACK_PACKAGE_MANAGER
        return None

    @staticmethod
    def _resolve_tool(manager: str) -> Optional[str]:
        if shutil.which(manager):
            return manager
        if manager != FALLBACK_PACKAGE_MANAGER and shutil.which(FALLBACK_PACKAGE_MANAGER):
            logger.warning(f"{manager} is not installed, falling back to {FALLBACK_PACKAGE_MANAGER}")
            return FALLBACK_PACKAGE_MANAGER
        return None

    def install(self, path: str) -> InstallResult:
        """
        Install dependencies in a worktree.

        Never raises; failures and timeouts are reported in the result.

        Args:
            path: Worktree directory

        Returns:
            InstallResult describing what happened
        """
        manager = self.detect(path)
        if manager is None:
            logger.debug(f"No {MANIFEST_FILE} in {path}, skipping install")
            return InstallResult(ran=False, success=True, message="nothing to install")

        tool = self._resolve_tool(manager)
        if tool is None:
            return InstallResult(ran=False, success=False, package_manager=manager,
                                 message=f"{manager} is not installed")

        env = {**os.environ, **INSTALL_ENV}
        logger.info(f"Running {tool} install in {path}")
        try:
            with console.status(f"Installing dependencies with {tool}..."):
                subprocess.run(
                    [tool, "install"], cwd=path, env=env, capture_output=True, text=True,
                    check=True, timeout=self.timeout,
                )
        except subprocess.TimeoutExpired:
            return InstallResult(ran=True, success=False, package_manager=tool, timed_out=True,
                                 message=f"{tool} install timed out after {self.timeout}s")
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or "").strip().splitlines()
            detail = stderr[-1] if stderr else f"exit {e.returncode}"
            return InstallResult(ran=True, success=False, package_manager=tool,
                                 message=f"{tool} install failed: {detail}")
        except OSError as e:
            return InstallResult(ran=True, success=False, package_manager=tool,
                                 message=f"{tool} install could not start: {e}")

        return InstallResult(ran=True, success=True, package_manager=tool,
                             message=f"Dependencies installed with {tool}")
