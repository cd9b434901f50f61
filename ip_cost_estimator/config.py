"""Configuration loading from YAML and environment variables."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from dotenv import load_dotenv

REFERENCE_SOURCES = ("static", "database", "rest")


@dataclass
class CalculatorConfig:
    reporting_currency: str = "USD"
    claims_insight_threshold: int = 20
    high_cost_threshold: float = 50000
    designated_countries: int = 5
    model_tax_benefits: bool = False


@dataclass
class SourcesConfig:
    reference_data: str = "static"  # static | database | rest


@dataclass
class RestConfig:
    base_url: str = ""
    rate_limit_per_minute: int = 60
    timeout_seconds: int = 15
    max_retries: int = 3
    api_key: str = ""


@dataclass
class NarrativeConfig:
    enabled: bool = False
    api_key: str = ""
    model: str = "claude-sonnet-4-20250514"
    rate_limit_per_minute: int = 10
    max_tokens: int = 500
    timeout_seconds: int = 30
    max_retries: int = 2


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: str = "logs/ip-cost-estimator.log"
    max_size_mb: int = 10
    backup_count: int = 5


@dataclass
class Config:
    calculator: CalculatorConfig = field(default_factory=CalculatorConfig)
    sources: SourcesConfig = field(default_factory=SourcesConfig)
    rest: RestConfig = field(default_factory=RestConfig)
    narrative: NarrativeConfig = field(default_factory=NarrativeConfig)
    database_path: str = "data/ip_costs.db"
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(config_path: str = "config.yaml", env_path: str = ".env") -> Config:
    """Load configuration from YAML file and environment variables."""
    # Load .env file for secrets
    env_file = Path(env_path)
    if env_file.exists():
        load_dotenv(env_file)

    # Load YAML config
    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_file) as f:
        raw = yaml.safe_load(f) or {}

    config = Config()

    # Calculator settings
    calc_raw = raw.get("calculator", {})
    config.calculator = CalculatorConfig(
        reporting_currency=calc_raw.get("reporting_currency", "USD"),
        claims_insight_threshold=calc_raw.get("claims_insight_threshold", 20),
        high_cost_threshold=calc_raw.get("high_cost_threshold", 50000),
        designated_countries=calc_raw.get("designated_countries", 5),
        model_tax_benefits=calc_raw.get("model_tax_benefits", False),
    )

    # Sources
    sources_raw = raw.get("sources", {})
    config.sources = SourcesConfig(
        reference_data=sources_raw.get("reference_data", "static"),
    )

    # REST reference API
    rest_raw = raw.get("rest", {})
    config.rest = RestConfig(
        base_url=rest_raw.get("base_url", config.rest.base_url),
        rate_limit_per_minute=rest_raw.get("rate_limit_per_minute", config.rest.rate_limit_per_minute),
        timeout_seconds=rest_raw.get("timeout_seconds", config.rest.timeout_seconds),
        max_retries=rest_raw.get("max_retries", config.rest.max_retries),
        api_key=os.environ.get("REFERENCE_API_KEY", ""),
    )

    # Database
    db_raw = raw.get("database", {})
    config.database_path = db_raw.get("path", config.database_path)

    # Logging
    log_raw = raw.get("logging", {})
    config.logging = LoggingConfig(
        level=log_raw.get("level", "INFO"),
        file=log_raw.get("file", "logs/ip-cost-estimator.log"),
        max_size_mb=log_raw.get("max_size_mb", 10),
        backup_count=log_raw.get("backup_count", 5),
    )

    # Narrative insight settings
    narrative_raw = raw.get("narrative", {})
    config.narrative = NarrativeConfig(
        enabled=narrative_raw.get("enabled", False),
        api_key=os.environ.get("ANTHROPIC_API_KEY", ""),
        model=narrative_raw.get("model", "claude-sonnet-4-20250514"),
        rate_limit_per_minute=narrative_raw.get("rate_limit_per_minute", 10),
        max_tokens=narrative_raw.get("max_tokens", 500),
        timeout_seconds=narrative_raw.get("timeout_seconds", 30),
        max_retries=narrative_raw.get("max_retries", 2),
    )

    return config


def validate_config(config: Config) -> list[str]:
    """Validate configuration and return a list of errors (empty if valid)."""
    errors = []

    if len(config.calculator.reporting_currency) != 3:
        errors.append(f"Invalid reporting currency: {config.calculator.reporting_currency!r}")

    if config.calculator.designated_countries < 0:
        errors.append("calculator.designated_countries must not be negative")

    if config.calculator.claims_insight_threshold < 1:
        errors.append("calculator.claims_insight_threshold must be at least 1")

    if config.sources.reference_data not in REFERENCE_SOURCES:
        errors.append(
            f"Unknown reference data source '{config.sources.reference_data}' "
            f"(expected one of: {', '.join(REFERENCE_SOURCES)})"
        )

    if config.sources.reference_data == "rest":
        if not config.rest.base_url:
            errors.append("rest.base_url is required when sources.reference_data is 'rest'")
        if not config.rest.api_key:
            errors.append("REFERENCE_API_KEY environment variable is not set (required for the rest source)")

    if config.rest.timeout_seconds <= 0:
        errors.append("rest.timeout_seconds must be positive")

    if config.narrative.enabled:
        if not config.narrative.api_key:
            errors.append("ANTHROPIC_API_KEY environment variable is not set (required when narrative.enabled is true)")
        if config.narrative.timeout_seconds <= 0:
            errors.append("narrative.timeout_seconds must be positive")

    return errors
