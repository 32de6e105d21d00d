"""Configuration management for zengit.

This module provides a clean interface for reading and writing
both repository-local and global configuration files.
"""

import configparser
import logging
import os
from pathlib import Path
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)

ENV_PREFIX = 'ZENGIT'

DEFAULT_TRANSFER_TIMEOUT = 60


def _new_parser() -> configparser.ConfigParser:
    return configparser.ConfigParser(strict=False, interpolation=None)


def _load(path: Path) -> configparser.ConfigParser:
    parser = _new_parser()
    if path.exists():
        try:
            parser.read(path)
        except configparser.Error as e:
            logger.warning("Ignoring unreadable config %s: %s", path, e)
            parser = _new_parser()
    return parser


class Config:
    """
    Manages Git-style INI configuration files.

    - Global config: ~/.gitconfig
    - Repository config: .git/config

    Repository config takes precedence over global config.
    Environment variables (ZENGIT_<SECTION>_<KEY>) take highest precedence.
    """

    GLOBAL_CONFIG_PATH = Path.home() / '.gitconfig'

    def __init__(self, repo_config_path: Optional[Path] = None):
        """
        Initialize Config manager.

        Args:
            repo_config_path: Path to repository config file, if in a repo
        """
        self.repo_config_path = Path(repo_config_path) if repo_config_path else None
        self._global_config = None
        self._repo_config = None

    @property
    def global_config(self) -> configparser.ConfigParser:
        if self._global_config is None:
            self._global_config = _load(self.GLOBAL_CONFIG_PATH)
        return self._global_config

    @property
    def repo_config(self) -> Optional[configparser.ConfigParser]:
        if self._repo_config is None and self.repo_config_path:
            self._repo_config = _load(self.repo_config_path)
        return self._repo_config

    def get(self, section: str, key: str, fallback: Optional[str] = None) -> Optional[str]:
        """
        Get a configuration value.

        Priority order (highest to lowest):
        1. Environment variables (ZENGIT_<SECTION>_<KEY>)
        2. Repository config
        3. Global config
        4. Fallback value

        Args:
            section: Config section (e.g., 'user', 'core', 'remote "origin"')
            key: Config key (e.g., 'name', 'email')
            fallback: Default value if not found
        """
        env_key = f"{ENV_PREFIX}_{section.upper()}_{key.upper()}"
        env_value = os.environ.get(env_key)
        if env_value is not None:
            return env_value

        if self.repo_config and self.repo_config.has_option(section, key):
            return self.repo_config.get(section, key)

        if self.global_config.has_option(section, key):
            return self.global_config.get(section, key)

        return fallback

    def get_bool(self, section: str, key: str, fallback: bool = False) -> bool:
        value = self.get(section, key)
        if value is None:
            return fallback
        value = value.strip().lower()
        if value in ('1', 'true', 'yes', 'on'):
            return True
        if value in ('0', 'false', 'no', 'off'):
            return False
        logger.warning("Invalid boolean for %s.%s: %r, using %s", section, key, value, fallback)
        return fallback

    def get_int(self, section: str, key: str, fallback: int = 0) -> int:
        value = self.get(section, key)
        if value is None:
            return fallback
        try:
            return int(value)
        except ValueError:
            logger.warning("Invalid integer for %s.%s: %r, using %s", section, key, value, fallback)
            return fallback

    def set(self, section: str, key: str, value: str, global_config: bool = False) -> None:
        """
        Set a configuration value.

        Args:
            section: Config section
            key: Config key
            value: Value to set
            global_config: If True, write to global config; otherwise repo config
        """
        if global_config:
            config = self.global_config
            config_path = self.GLOBAL_CONFIG_PATH
        else:
            if not self.repo_config_path:
                raise ValueError("No repository config path available")
            config = self.repo_config
            config_path = self.repo_config_path

        if not config.has_section(section):
            config.add_section(section)
        config.set(section, key, value)

        with open(config_path, 'w') as f:
            config.write(f)

    def unset(self, section: str, key: str, global_config: bool = False) -> bool:
        """
        Remove a configuration value.

        Returns:
            True if value was removed, False if it didn't exist
        """
        if global_config:
            config = self.global_config
            config_path = self.GLOBAL_CONFIG_PATH
        else:
            if not self.repo_config:
                return False
            config = self.repo_config
            config_path = self.repo_config_path

        if not config.has_option(section, key):
            return False

        config.remove_option(section, key)
        if not config.options(section):
            config.remove_section(section)

        with open(config_path, 'w') as f:
            config.write(f)
        return True

    def sections(self, prefix: str = '') -> Dict[str, Dict[str, str]]:
        """Return repository sections whose names start with ``prefix``."""
        result = {}
        if self.repo_config:
            for section in self.repo_config.sections():
                if section.startswith(prefix):
                    result[section] = dict(self.repo_config.items(section))
        return result

    def get_user_identity(self) -> Tuple[Optional[str], Optional[str]]:
        """
        Get user name and email for commits and tags.

        Returns:
            Tuple of (name, email), either may be None
        """
        return self.get('user', 'name'), self.get('user', 'email')

    @property
    def refuse_dirty_checkout(self) -> bool:
        return self.get_bool('zengit', 'refuseDirtyCheckout', fallback=True)

    @property
    def transfer_timeout(self) -> int:
        return self.get_int('zengit', 'transferTimeout', fallback=DEFAULT_TRANSFER_TIMEOUT)


def get_config(repo=None) -> Config:
    """
    Get a Config instance.

    Args:
        repo: Repository instance, or None for global-only config
    """
    if repo:
        return Config(repo.config_file)
    return Config()
