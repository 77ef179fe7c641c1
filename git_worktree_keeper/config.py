"""Configuration handling for git-worktree-keeper"""

import os
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from git_worktree_keeper.constants import (
    DEFAULT_GIT_TIMEOUT,
    DEFAULT_INSTALL_TIMEOUT,
    DEFAULT_MAX_DEPTH,
    DEFAULT_REMOTE,
    DEFAULT_TICKET_PATTERN,
    MAIN_BRANCH_CANDIDATES,
)
from git_worktree_keeper.exceptions import ConfigError
from git_worktree_keeper.logging_config import get_logger

logger = get_logger(__name__)

TICKET_PROVIDERS = ["acli", "github", "none"]

# Environment variable -> config field
ENV_OVERRIDES = {
    "WORKTREE_KEEPER_WORKTREES_DIR": "worktrees_root",
    "WORKTREE_KEEPER_PROGRAMMING_DIR": "programming_root",
    "WORKTREE_KEEPER_TICKET_PATTERN": "ticket_pattern",
    "WORKTREE_KEEPER_TICKET_LINK": "ticket_link",
    "WORKTREE_KEEPER_TICKET_PROVIDER": "ticket_provider",
    "GITHUB_TOKEN": "github_token",
}


def _default_programming_root() -> str:
    return str(Path.home() / "Programming")


def _default_worktrees_root() -> str:
    return str(Path.home() / "Programming" / "Worktrees")


def _default_state_file() -> str:
    return str(Path.home() / ".git-worktree-keeper" / "last_repository")


def default_config_path() -> Path:
    """Location of the YAML configuration file."""
    config_home = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(config_home) / "git-worktree-keeper" / "config.yaml"


@dataclass
class Config:
    """Configuration for git-worktree-keeper with validation."""

    # Directories
    worktrees_root: str = field(default_factory=_default_worktrees_root)
    programming_root: str = field(default_factory=_default_programming_root)
    max_depth: int = DEFAULT_MAX_DEPTH

    # Git
    remote_name: str = DEFAULT_REMOTE
    main_branch_candidates: List[str] = field(default_factory=lambda: list(MAIN_BRANCH_CANDIDATES))
    git_timeout: int = DEFAULT_GIT_TIMEOUT

    # Ticket tracker
    ticket_pattern: str = DEFAULT_TICKET_PATTERN
    ticket_link: str = ""  # Deep-link prefix, ticket id is appended
    ticket_provider: str = "acli"
    github_token: Optional[str] = None

    # Dependency installation
    install_timeout: int = DEFAULT_INSTALL_TIMEOUT

    # Interactive state
    state_file: str = field(default_factory=_default_state_file)

    # Execution modes
    verbose: bool = False
    debug: bool = False

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_directories()
        self._validate_max_depth()
        self._validate_ticket_pattern()
        self._validate_ticket_provider()
        self._validate_main_branch_candidates()
        self._validate_timeouts()

    def _validate_directories(self):
        """Expand and absolutize the configured roots."""
        for name in ("worktrees_root", "programming_root", "state_file"):
            value = getattr(self, name)
            if not value or not str(value).strip():
                raise ConfigError(f"{name} cannot be empty")
            setattr(self, name, str(Path(os.path.expandvars(str(value).strip())).expanduser().absolute()))

    def _validate_max_depth(self):
        """Validate max_depth is within 1..10."""
        if not 1 <= self.max_depth <= 10:
            raise ConfigError(f"max_depth must be between 1 and 10, got {self.max_depth}")

    def _validate_ticket_pattern(self):
        """Validate ticket_pattern compiles."""
        try:
            re.compile(self.ticket_pattern)
        except re.error as e:
            raise ConfigError(f"ticket_pattern is not a valid regular expression: {e}")

    def _validate_ticket_provider(self):
        """Validate ticket_provider is one of allowed values."""
        if self.ticket_provider not in TICKET_PROVIDERS:
            raise ConfigError(
                f"ticket_provider must be one of {TICKET_PROVIDERS}, got '{self.ticket_provider}'"
            )

    def _validate_main_branch_candidates(self):
        """Validate main_branch_candidates is a non-empty list of names."""
        if isinstance(self.main_branch_candidates, str):
            self.main_branch_candidates = [self.main_branch_candidates]
        candidates = [str(name).strip() for name in self.main_branch_candidates if str(name).strip()]
        if not candidates:
            raise ConfigError("main_branch_candidates cannot be empty")
        self.main_branch_candidates = candidates

    def _validate_timeouts(self):
        """Validate timeouts are positive."""
        for name in ("git_timeout", "install_timeout"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive, got {getattr(self, name)}")

    @property
    def ticket_regex(self) -> "re.Pattern":
        return re.compile(self.ticket_pattern)

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def get(self, key: str, default=None):
        """Get config value by key."""
        return getattr(self, key, default)

    @classmethod
    def from_dict(cls, config_dict: Mapping[str, Any]) -> "Config":
        """Create Config from dictionary, ignoring unknown keys."""
        known_fields = {f.name for f in fields(cls)}
        unknown = set(config_dict) - known_fields
        if unknown:
            logger.warning(f"Ignoring unknown configuration keys: {', '.join(sorted(unknown))}")
        filtered = {k: v for k, v in config_dict.items() if k in known_fields}
        return cls(**filtered)


def read_config_file(path: Path) -> Dict[str, Any]:
    """Read the YAML configuration file.

    Args:
        path: Path to the YAML file

    Returns:
        Mapping of configuration values, empty if the file doesn't exist

    Raises:
        ConfigError: If the file can't be parsed or isn't a mapping
    """
    if not path.exists():
        logger.debug(f"No configuration file at {path}")
        return {}

    try:
        content = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Could not read configuration file {path}: {e}")

    if not isinstance(content, dict):
        raise ConfigError(f"Configuration file {path} must contain a mapping")

    logger.debug(f"Loaded configuration from {path}")
    return content


def load_config(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> Config:
    """Build the effective configuration.

    Precedence, lowest first: defaults, YAML file, environment, overrides.

    Args:
        config_path: YAML file to read (defaults to the XDG location)
        environ: Environment mapping (defaults to os.environ)
        overrides: Values from the command line; None values are ignored

    Returns:
        Validated Config
    """
    environ = os.environ if environ is None else environ
    values: Dict[str, Any] = dict(read_config_file(config_path or default_config_path()))

    for env_name, key in ENV_OVERRIDES.items():
        env_value = environ.get(env_name)
        if env_value:
            values[key] = env_value

    for key, value in (overrides or {}).items():
        if value is not None:
            values[key] = value

    return Config.from_dict(values)
