"""Maestro application configuration.

Loads settings from two YAML files:
  * maestro.settings.yaml  — non-secret configuration
  * maestro.secrets.yaml   — secrets (never committed)

Either path can be overridden with the ``MAESTRO_SETTINGS_PATH`` and
``MAESTRO_SECRETS_PATH`` environment variables. Missing files fall back to
defaults so the service starts without any configuration at all.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from maestro.files.schemas import MAX_FILE_SIZE_BYTES, MAX_FILES

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("maestro.settings.yaml")
SECRETS_FILE  = Path("maestro.secrets.yaml")


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


# ---------------------------------------------------------------------------
# Secrets models
# ---------------------------------------------------------------------------


class BackendSecrets(BaseModel):
    api_token: Optional[str] = None


class Secrets(BaseModel):
    backend: BackendSecrets = Field(default_factory=BackendSecrets)


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:            str  = "0.0.0.0"
    port:            int  = 8000
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])


class LoggingSettings(BaseModel):
    level: str = "info"


class IngestionSettings(BaseModel):
    """Limits applied at the admission boundary and to each remote step."""
    max_files:                int   = MAX_FILES
    max_file_size_bytes:      int   = MAX_FILE_SIZE_BYTES
    step_timeout_seconds:     float = 30.0
    transfer_timeout_seconds: float = 300.0
    accepted_extensions: List[str] = Field(
        default_factory=lambda: [
            ".txt", ".md", ".pdf", ".json", ".csv", ".log", ".xml", ".yaml", ".yml",
        ]
    )

    @field_validator("max_files")
    @classmethod
    def _positive_max_files(cls, value: int) -> int:
        if value < 1:
            raise ValueError("ingestion.max_files must be at least 1")
        return value


class BackendSettings(BaseModel):
    """Where the upload/summarization backend lives.

    ``notify_enabled`` turns on the intermediate notify call some backend
    deployments require before the object key is known.
    """
    base_url:        str  = "http://localhost:9000"
    credential_path: str  = "/upload-url"
    notify_path:     str  = "/v1/notify"
    summary_path:    str  = "/v2/summary"
    notify_enabled:  bool = False


class AppConfig(BaseModel):
    server:    ServerSettings    = Field(default_factory=ServerSettings)
    logging:   LoggingSettings   = Field(default_factory=LoggingSettings)
    ingestion: IngestionSettings = Field(default_factory=IngestionSettings)
    backend:   BackendSettings   = Field(default_factory=BackendSettings)
    secrets:   Secrets           = Field(default_factory=Secrets)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------

_config: Optional[AppConfig] = None


def load_config(
    settings_path: Optional[Path] = None,
    secrets_path: Optional[Path] = None,
) -> AppConfig:
    """Load and merge settings + secrets into a single *AppConfig* object."""
    settings_path = Path(
        settings_path or os.environ.get("MAESTRO_SETTINGS_PATH") or SETTINGS_FILE
    )
    secrets_path = Path(
        secrets_path or os.environ.get("MAESTRO_SECRETS_PATH") or SECRETS_FILE
    )

    settings_data = _load_yaml(settings_path)
    secrets_data  = _load_yaml(secrets_path)

    # Merge: secrets live under the "secrets" key in AppConfig
    settings_data["secrets"] = secrets_data

    config = AppConfig(**settings_data)
    logger.info(
        "Settings loaded (backend=%s, notify_enabled=%s, max_files=%d)",
        config.backend.base_url,
        config.backend.notify_enabled,
        config.ingestion.max_files,
    )
    return config


def get_config() -> AppConfig:
    """Return the process-wide config, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Drop the cached config (for testing)."""
    global _config
    _config = None
