# ============================================================================
# HEALTH SETTINGS
# ============================================================================
# EPOCH: 1 - HEALTH PASS
# STATUS: Core - Typed configuration
# PURPOSE: Load and validate health-check configuration from the environment
# CREATED: 18 OCT 2026
# ============================================================================
"""
Health Settings

Configuration is read from the process environment layered over an
optional `.env` file (process environment wins). Values are validated by
pydantic at load time; any problem surfaces as ConfigError before a single
probe runs.

Design:
- Immutable models (frozen)
- Thresholds are typed numbers with warn < crit enforced
- from_env() is the only place that touches os.environ
"""

import os
import socket
from enum import Enum
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple, Union

from dotenv import dotenv_values
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from core.errors import ConfigError


class PostgresCheckMode(str, Enum):
    """How PostgreSQL readiness is probed."""
    COMPOSE = "compose"   # pg_isready inside the compose service
    DIRECT = "direct"     # psycopg connection from this host


class MetricsBackendName(str, Enum):
    """System metrics backend selection."""
    AUTO = "auto"
    PSUTIL = "psutil"
    PROCFS = "procfs"


class ThresholdPair(BaseModel):
    """Warning and critical percentages for a resource probe."""

    model_config = {"frozen": True}

    warn: float = Field(ge=0, le=100, description="WARN at or above this percentage")
    crit: float = Field(ge=0, le=100, description="FAIL at or above this percentage")

    @model_validator(mode="after")
    def _check_order(self) -> "ThresholdPair":
        if self.warn >= self.crit:
            raise ValueError(
                f"warning threshold ({self.warn:g}) must be below critical threshold ({self.crit:g})"
            )
        return self


class TelegramSettings(BaseModel):
    """Alert sink credentials."""

    model_config = {"frozen": True}

    bot_token: Optional[str] = None
    chat_id: Optional[str] = None
    api_url: str = "https://api.telegram.org"

    @property
    def enabled(self) -> bool:
        return bool(self.bot_token and self.chat_id)


class PostgresSettings(BaseModel):
    """Readiness probe target."""

    model_config = {"frozen": True}

    mode: PostgresCheckMode = PostgresCheckMode.COMPOSE
    user: str = "postgres"
    database: str = "postgres"
    host: str = "localhost"
    port: int = Field(default=5432, ge=1, le=65535)
    password: Optional[str] = None
    compose_service: str = "postgres"

    def conninfo(self) -> str:
        """Build a libpq keyword/value connection string."""
        parts = [
            f"host={self.host}",
            f"port={self.port}",
            f"dbname={self.database}",
            f"user={self.user}",
        ]
        if self.password:
            parts.append(f"password={self.password}")
        return " ".join(parts)


class WahaSettings(BaseModel):
    """WhatsApp HTTP API session check."""

    model_config = {"frozen": True}

    enabled: bool = True
    url: str = "http://localhost:3000"
    session: str = "default"
    api_key: Optional[str] = None


class UnavailablePolicySettings(BaseModel):
    """Status recorded when a probe of a given kind cannot measure."""

    model_config = {"frozen": True}

    liveness: str = "fail"
    readiness: str = "fail"
    resource: str = "warn"

    @field_validator("liveness", "readiness", "resource")
    @classmethod
    def _check_status(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in ("warn", "fail"):
            raise ValueError(f"must be 'warn' or 'fail', got {value!r}")
        return value


class HealthSettings(BaseModel):
    """Complete configuration for one health pass."""

    model_config = {"frozen": True}

    host_name: str = Field(default_factory=socket.gethostname)

    # Liveness
    n8n_health_url: str = "http://localhost:5678/healthz"
    n8n_accepted_status: Tuple[int, ...] = (200,)
    waha: WahaSettings = Field(default_factory=WahaSettings)

    # Readiness
    postgres: PostgresSettings = Field(default_factory=PostgresSettings)
    compose_file: str = "docker-compose.yml"
    containers: Tuple[str, ...] = ()

    # Resources
    disk_path: str = "/"
    disk: ThresholdPair = Field(default_factory=lambda: ThresholdPair(warn=80, crit=90))
    memory: ThresholdPair = Field(default_factory=lambda: ThresholdPair(warn=85, crit=95))
    metrics_backend: MetricsBackendName = MetricsBackendName.AUTO
    unavailable: UnavailablePolicySettings = Field(default_factory=UnavailablePolicySettings)

    # Execution
    probe_timeout_seconds: float = Field(default=5.0, gt=0)
    pass_timeout_seconds: float = Field(default=60.0, gt=0)
    concurrent: bool = True

    # Alerting
    telegram: TelegramSettings = Field(default_factory=TelegramSettings)

    # Logging
    log_dir: Path = Path("./logs")
    log_file: str = "healthcheck.log"
    log_max_bytes: int = Field(default=10 * 1024 * 1024, gt=0)
    log_level: str = "INFO"
    log_format: str = "human"

    @field_validator("n8n_accepted_status")
    @classmethod
    def _check_status_codes(cls, value: Tuple[int, ...]) -> Tuple[int, ...]:
        if not value:
            raise ValueError("at least one accepted status code is required")
        for code in value:
            if not 100 <= code <= 599:
                raise ValueError(f"invalid HTTP status code: {code}")
        return value

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        env_file: Optional[Union[str, Path]] = None,
    ) -> "HealthSettings":
        """
        Create settings from environment variables.

        Args:
            environ: Mapping to read (defaults to os.environ)
            env_file: Optional `.env` file; values in environ take precedence.
                      An explicitly named file that does not exist is an error.

        Raises:
            ConfigError: If any value is missing, malformed or inconsistent
        """
        values = _merge_sources(environ, env_file)

        def get(key: str, default: Optional[str] = None) -> Optional[str]:
            value = values.get(key)
            if value is None or value == "":
                return default
            return value

        raw = {
            "host_name": get("HEALTH_HOST_NAME") or get("N8N_HOST") or socket.gethostname(),
            "n8n_health_url": get("N8N_HEALTH_URL", "http://localhost:5678/healthz"),
            "n8n_accepted_status": _split_list(get("N8N_ACCEPTED_STATUS", "200")),
            "waha": {
                "enabled": get("WAHA_ENABLED", "true"),
                "url": get("WAHA_URL", "http://localhost:3000"),
                "session": get("WAHA_SESSION", "default"),
                "api_key": get("WAHA_API_KEY"),
            },
            "postgres": {
                "mode": get("POSTGRES_CHECK_MODE", "compose").lower(),
                "user": get("POSTGRES_USER", "postgres"),
                "database": get("POSTGRES_DB", "postgres"),
                "host": get("POSTGRES_HOST", "localhost"),
                "port": get("POSTGRES_PORT", "5432"),
                "password": get("POSTGRES_PASSWORD"),
                "compose_service": get("COMPOSE_SERVICE_POSTGRES", "postgres"),
            },
            "compose_file": get("COMPOSE_FILE", "docker-compose.yml"),
            "containers": _split_list(get("HEALTH_CONTAINERS", "")),
            "disk_path": get("DISK_PATH", "/"),
            "disk": {
                "warn": get("DISK_WARN_THRESHOLD", "80"),
                "crit": get("DISK_CRIT_THRESHOLD", "90"),
            },
            "memory": {
                "warn": get("MEMORY_WARN_THRESHOLD", "85"),
                "crit": get("MEMORY_CRIT_THRESHOLD", "95"),
            },
            "metrics_backend": get("HEALTH_METRICS_BACKEND", "auto").lower(),
            "unavailable": {
                "liveness": get("UNAVAILABLE_LIVENESS_STATUS", "fail"),
                "readiness": get("UNAVAILABLE_READINESS_STATUS", "fail"),
                "resource": get("UNAVAILABLE_RESOURCE_STATUS", "warn"),
            },
            "probe_timeout_seconds": get("PROBE_TIMEOUT_SECONDS", "5"),
            "pass_timeout_seconds": get("PASS_TIMEOUT_SECONDS", "60"),
            "concurrent": get("HEALTH_CONCURRENT", "true"),
            "telegram": {
                "bot_token": get("TELEGRAM_BOT_TOKEN"),
                "chat_id": get("TELEGRAM_CHAT_ID"),
                "api_url": get("TELEGRAM_API_URL", "https://api.telegram.org"),
            },
            "log_dir": get("HEALTH_LOG_DIR", "./logs"),
            "log_file": get("HEALTH_LOG_FILE", "healthcheck.log"),
            "log_max_bytes": get("HEALTH_LOG_MAX_BYTES", str(10 * 1024 * 1024)),
            "log_level": get("LOG_LEVEL", "INFO"),
            "log_format": get("LOG_FORMAT", "human").lower(),
        }

        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            raise ConfigError(_describe_validation_error(e)) from e


def _merge_sources(
    environ: Optional[Mapping[str, str]],
    env_file: Optional[Union[str, Path]],
) -> Dict[str, Optional[str]]:
    """Layer environ over the .env file."""
    if environ is None:
        environ = os.environ

    values: Dict[str, Optional[str]] = {}
    if env_file is not None:
        path = Path(env_file)
        if not path.is_file():
            raise ConfigError(f"Environment file not found: {path}", key="env_file")
        try:
            values.update(dotenv_values(path))
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigError(f"Cannot read environment file {path}: {e}", key="env_file") from e

    values.update(environ)
    return values


def _split_list(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _describe_validation_error(error: ValidationError) -> str:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "settings"
        problems.append(f"{location}: {item['msg']}")
    return "Invalid configuration: " + "; ".join(problems)


__all__ = [
    "HealthSettings",
    "ThresholdPair",
    "TelegramSettings",
    "PostgresSettings",
    "PostgresCheckMode",
    "WahaSettings",
    "UnavailablePolicySettings",
    "MetricsBackendName",
]
