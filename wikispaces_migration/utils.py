"""
Wikispaces Migration - Utility Functions

Helper functions for configuration, environment, and logging.
"""

import os
import logging
import tempfile
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass, field

from .discussion import DEFAULT_TALK_SUMMARY
from .importer import DEFAULT_FOOTER_SUMMARY, DEFAULT_IMPORTER_USERNAME, DEFAULT_SUMMARY
from .policy import WriteMode


logger = logging.getLogger(__name__)


@dataclass
class WikispacesConfig:
    """Credentials for the Wikispaces space being migrated."""
    user: str
    password: str
    space: str

    @property
    def is_valid(self) -> bool:
        """Check if all required fields are present."""
        return bool(self.user and self.password and self.space)


@dataclass
class MediaWikiConfig:
    """Connection settings for the target MediaWiki."""
    url: str
    user: str
    password: str

    @property
    def is_valid(self) -> bool:
        return bool(self.url and self.user and self.password)


@dataclass
class AppConfig:
    """Application configuration."""
    source: WikispacesConfig
    target: MediaWikiConfig

    # Import settings
    overwrite: WriteMode = WriteMode.NEVER
    use_timestamp: bool = False
    with_history: bool = False
    with_tags: bool = True
    with_comments: bool = True
    cache_dir: str = field(default_factory=lambda: str(Path(tempfile.gettempdir()) / "wikispaces"))

    # Edit summaries
    summary: str = DEFAULT_SUMMARY
    talk_summary: str = DEFAULT_TALK_SUMMARY
    footer_summary: str = DEFAULT_FOOTER_SUMMARY
    importer_username: str = DEFAULT_IMPORTER_USERNAME
    interwiki_prefix: str = "wikispaces"

    # Network
    api_delay: float = 0.2
    timeout: int = 60

    verbose_logging: bool = False


def load_env_file(env_path: str = ".env") -> Dict[str, str]:
    """
    Load environment variables from a .env file.

    Supports simple KEY=VALUE format and quoted values.

    Args:
        env_path: Path to .env file

    Returns:
        Dictionary of environment variables
    """
    env_vars = {}
    path = Path(env_path)

    if not path.exists():
        logger.warning(f"Env file not found: {env_path}")
        return env_vars

    with open(path, "r") as f:
        for line in f:
            line = line.strip()

            # Skip empty lines and comments
            if not line or line.startswith("#"):
                continue

            if "=" not in line:
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip()

            # Remove surrounding quotes
            if (value.startswith('"') and value.endswith('"')) or \
               (value.startswith("'") and value.endswith("'")):
                value = value[1:-1]

            env_vars[key] = value

    logger.debug(f"Loaded {len(env_vars)} variables from {env_path}")
    return env_vars


def load_config(config_path: str = "config.yaml") -> Dict[str, Any]:
    """
    Load application configuration from YAML file.

    Args:
        config_path: Path to config.yaml

    Returns:
        Configuration dictionary
    """
    path = Path(config_path)

    if not path.exists():
        logger.warning(f"Config file not found: {config_path}")
        return {}

    with open(path, "r") as f:
        config = yaml.safe_load(f) or {}

    logger.debug(f"Loaded config from {config_path}")
    return config


def get_env_var(name: str, env_vars: Optional[Dict[str, str]] = None) -> str:
    """Get value from env trying upper, exact and lower case names."""
    env = env_vars or os.environ
    return (
        env.get(name.upper()) or
        env.get(name) or
        env.get(name.lower()) or
        ""
    )


def get_wikispaces_config(env_vars: Optional[Dict[str, str]] = None) -> WikispacesConfig:
    """Build a WikispacesConfig from environment variables."""
    config = WikispacesConfig(
        user=get_env_var("wikispaces_user", env_vars),
        password=get_env_var("wikispaces_password", env_vars),
        space=get_env_var("wikispaces_space", env_vars),
    )
    if config.space:
        masked = "***" if config.password else "None"
        logger.debug(f"Loaded Wikispaces config: Space={config.space}, User={config.user}, Password={masked}")
    return config


def get_mediawiki_config(env_vars: Optional[Dict[str, str]] = None) -> MediaWikiConfig:
    """Build a MediaWikiConfig from environment variables."""
    config = MediaWikiConfig(
        url=get_env_var("mediawiki_url", env_vars),
        user=get_env_var("mediawiki_user", env_vars),
        password=get_env_var("mediawiki_password", env_vars),
    )
    if config.url and "://" not in config.url:
        logger.warning(f"MediaWiki URL {config.url} has no scheme, assuming https")
    return config


def load_app_config(
    env_path: str = ".env",
    config_path: str = "config.yaml",
) -> AppConfig:
    """
    Load complete application configuration from env and config files.

    Args:
        env_path: Path to .env file
        config_path: Path to config.yaml

    Returns:
        AppConfig object

    Raises:
        ValueError: When the overwrite mode is not recognized
    """
    env_vars = load_env_file(env_path)

    # Merge with os.environ (env vars take precedence)
    for key, value in env_vars.items():
        if key not in os.environ:
            os.environ[key] = value

    yaml_config = load_config(config_path)
    defaults = AppConfig(
        source=WikispacesConfig("", "", ""),
        target=MediaWikiConfig("", "", ""),
    )

    return AppConfig(
        source=get_wikispaces_config(),
        target=get_mediawiki_config(),
        overwrite=WriteMode.parse(yaml_config.get("overwrite", "never")),
        use_timestamp=yaml_config.get("use_timestamp", False),
        with_history=yaml_config.get("with_history", False),
        with_tags=yaml_config.get("with_tags", True),
        with_comments=yaml_config.get("with_comments", True),
        cache_dir=yaml_config.get("cache_dir") or defaults.cache_dir,
        summary=yaml_config.get("summary", DEFAULT_SUMMARY),
        talk_summary=yaml_config.get("talk_summary", DEFAULT_TALK_SUMMARY),
        footer_summary=yaml_config.get("footer_summary", DEFAULT_FOOTER_SUMMARY),
        importer_username=yaml_config.get("importer_username", DEFAULT_IMPORTER_USERNAME),
        interwiki_prefix=yaml_config.get("interwiki_prefix", "wikispaces"),
        api_delay=yaml_config.get("api_delay_seconds", 0.2),
        timeout=yaml_config.get("timeout", 60),
        verbose_logging=yaml_config.get("verbose_logging", False),
    )


def setup_logging(verbose: bool = False) -> None:
    """
    Configure logging for the application.

    Args:
        verbose: Enable debug logging
    """
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # basicConfig leaves an existing configuration alone
    logging.getLogger().setLevel(level)

    # Reduce noise from HTTP and SOAP libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
    logging.getLogger("zeep").setLevel(logging.WARNING)


def validate_config(config: AppConfig) -> list[str]:
    """
    Validate application configuration.

    Args:
        config: AppConfig to validate

    Returns:
        List of validation error messages (empty if valid)
    """
    errors = []

    if not config.source.user:
        errors.append("Missing Wikispaces username (wikispaces_user)")
    if not config.source.password:
        errors.append("Missing Wikispaces password (wikispaces_password)")
    if not config.source.space:
        errors.append("Missing Wikispaces space name (wikispaces_space)")

    if not config.target.url:
        errors.append("Missing MediaWiki URL (mediawiki_url)")
    if not config.target.user:
        errors.append("Missing MediaWiki username (mediawiki_user)")
    if not config.target.password:
        errors.append("Missing MediaWiki password (mediawiki_password)")

    return errors
