"""
Configuration management using YAML files and dataclasses.

This module defines all configuration dataclasses and provides loading
from YAML files with defaults. Configuration sections:
- BotConfig: Trigger command and summary storage settings
- MatrixConfig: Chat transport connection settings
- ProviderConfig: Generative-text provider settings
- WikipediaConfig: Article search/content provider settings
- LoggingConfig: Logging behavior
- LangfuseConfig: Langfuse tracing settings
- AppConfig: Root configuration container

All sections are frozen: configuration is loaded once at startup and
never mutated afterwards. Overrides go through ``dataclasses.replace``.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
import os
from typing import Any

import yaml

from .core.errors import ConfigError


DEFAULT_SYSTEM_PROMPT = (
    "You summarize encyclopedia articles for a chat room. "
    "Write a short, factual summary of the article in a few sentences. "
    "Do not add information that is not in the article."
)


@dataclass(frozen=True)
class BotConfig:
    """Configuration for command handling and the summary cache.

    Attributes:
        command: Trigger token a message must start with (followed by one space)
        output_dir: Directory where summaries are stored, one file per title
        single_flight: Serialize concurrent work for the same title so a summary
            is generated and written at most once
    """

    command: str = "!wiki"
    output_dir: str = "summaries"
    single_flight: bool = True


@dataclass(frozen=True)
class MatrixConfig:
    """Configuration for the Matrix chat transport.

    Attributes:
        homeserver: Base URL of the homeserver (e.g., "https://matrix.org")
        user_id: Full user id of the bot account (e.g., "@wikibot:matrix.org")
        access_token: Optional inline access token (overrides env var)
        access_token_env: Environment variable name containing the access token
        sync_timeout_ms: Long-poll timeout passed to /sync
        skip_initial_sync: Drop the backlog returned by the first /sync
        retry_delay_seconds: Pause before polling again after a failed /sync
        timeout_seconds: HTTP timeout for non-sync requests
    """

    homeserver: str = "https://matrix.org"
    user_id: str = ""
    access_token: str | None = None
    access_token_env: str = "MATRIX_ACCESS_TOKEN"
    sync_timeout_ms: int = 30000
    skip_initial_sync: bool = True
    retry_delay_seconds: float = 10.0
    timeout_seconds: float = 30.0


@dataclass(frozen=True)
class ProviderConfig:
    """Configuration for the generative-text provider.

    Attributes:
        name: Provider name ("openai", "openai_compatible" or "gemini")
        model: Model identifier (e.g., "gpt-4")
        system_prompt: Fixed system instruction sent with every article
        base_url: Base URL for the provider API (provider default when unset)
        api_key: Optional inline API key (overrides env var)
        api_key_env: Environment variable name containing the API key
        timeout_seconds: HTTP timeout for a single completion call
        trust_env: Whether to respect system proxy settings for API requests
    """

    name: str = "openai"
    model: str = "gpt-4"
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    base_url: str | None = None
    api_key: str | None = None
    api_key_env: str = "OPENAI_API_KEY"
    timeout_seconds: float = 60.0
    trust_env: bool = True


@dataclass(frozen=True)
class WikipediaConfig:
    """Configuration for the Wikipedia search and content provider.

    Attributes:
        language: Wikipedia language edition, used when base_url is not set
        base_url: Optional explicit MediaWiki api.php URL
        user_agent: User-Agent header (Wikimedia requires a descriptive one)
        timeout_seconds: HTTP request timeout
        trust_env: Whether to respect system proxy settings
    """

    language: str = "en"
    base_url: str | None = None
    user_agent: str = "wikibrief/0.1 (chat summary bot)"
    timeout_seconds: float = 20.0
    trust_env: bool = True


@dataclass(frozen=True)
class LoggingConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level ("DEBUG", "INFO", "WARNING", "ERROR")
        console: Whether to log to console
        file: Whether to log to file
        format: Log file format ("jsonl" or "plain")
        directory: Directory for the log file
        filename: Name of the main log file
    """

    level: str = "INFO"
    console: bool = True
    file: bool = False
    format: str = "jsonl"
    directory: str = "logs"
    filename: str = "bot.jsonl"


@dataclass(frozen=True)
class LangfuseConfig:
    """Configuration for Langfuse tracing.

    Attributes:
        enabled: Whether to enable Langfuse tracing
        public_key: Langfuse public key (optional)
        secret_key: Langfuse secret key (optional)
        host: Langfuse host URL (optional)
        environment: Langfuse environment label (optional)
        release: Langfuse release identifier (optional)
        redaction: Redaction mode for prompt/response payloads
        max_text_chars: Maximum characters for prompt/response payloads
    """

    enabled: bool = False
    public_key: str | None = None
    secret_key: str | None = None
    host: str | None = None
    environment: str | None = None
    release: str | None = None
    redaction: str = "none"
    max_text_chars: int = 20000


@dataclass(frozen=True)
class AppConfig:
    """Root configuration container aggregating all config sections."""

    bot: BotConfig = field(default_factory=BotConfig)
    matrix: MatrixConfig = field(default_factory=MatrixConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    wikipedia: WikipediaConfig = field(default_factory=WikipediaConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    langfuse: LangfuseConfig = field(default_factory=LangfuseConfig)


DEFAULT_CONFIG = AppConfig()

_SECTIONS: dict[str, type] = {
    "bot": BotConfig,
    "matrix": MatrixConfig,
    "provider": ProviderConfig,
    "wikipedia": WikipediaConfig,
    "logging": LoggingConfig,
    "langfuse": LangfuseConfig,
}


def load_config(path: str | None) -> AppConfig:
    """Load configuration from a YAML file with defaults.

    Raises:
        ConfigError: If the file cannot be read or is not a YAML mapping
    """
    if not path:
        return DEFAULT_CONFIG

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to load configuration from {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"Configuration root must be a mapping: {path}")
    return _merge_config(DEFAULT_CONFIG, raw)


def _merge_config(base: AppConfig, raw: dict[str, Any]) -> AppConfig:
    """Merge raw YAML config into base AppConfig."""
    data = asdict(base)
    for key, value in raw.items():
        if key not in data or value is None:
            continue
        if not isinstance(value, dict):
            raise ConfigError(f"Config section '{key}' must be a mapping")
        data[key].update(value)
    return _fromdict(data)


def _fromdict(data: dict[str, Any]) -> AppConfig:
    """Reconstruct AppConfig from nested dictionary, ignoring unknown keys."""
    sections = {}
    for name, section_cls in _SECTIONS.items():
        known = {f.name for f in fields(section_cls)}
        values = {k: v for k, v in data.get(name, {}).items() if k in known}
        sections[name] = section_cls(**values)
    return AppConfig(**sections)


def get_api_key(cfg: ProviderConfig) -> str | None:
    """Get API key from inline config or environment variable."""
    if cfg.api_key:
        return cfg.api_key
    return os.getenv(cfg.api_key_env)


def get_access_token(cfg: MatrixConfig) -> str | None:
    """Get Matrix access token from inline config or environment variable."""
    if cfg.access_token:
        return cfg.access_token
    return os.getenv(cfg.access_token_env)


def get_wikipedia_api_url(cfg: WikipediaConfig) -> str:
    """Return the MediaWiki api.php endpoint for the configured edition."""
    if cfg.base_url:
        return cfg.base_url
    return f"https://{cfg.language}.wikipedia.org/w/api.php"
