"""
Policy adapter configuration loader.

Configuration is read from a YAML file:
- database: where the policy table lives (URL, optional schema)
- logging: log level for the CLI
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml


DEFAULT_DATABASE_URL = "sqlite:///./data/casbin.db"


@dataclass
class DatabaseConfig:
    url: str = DEFAULT_DATABASE_URL
    schema: Optional[str] = None  # e.g. "casbin"; None uses the default database
    echo: bool = False


@dataclass
class LoggingConfig:
    level: str = "INFO"


@dataclass
class Config:
    """Configuration loaded from config.yaml."""
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(config_path: str | Path) -> Config:
    """Load configuration from a YAML file."""
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    config = Config()

    # Database
    if "database" in data:
        db_data = data["database"] or {}
        config.database = DatabaseConfig(
            url=db_data.get("url", DEFAULT_DATABASE_URL),
            schema=db_data.get("schema"),
            echo=bool(db_data.get("echo", False)),
        )

    # Logging
    if "logging" in data:
        logging_data = data["logging"] or {}
        config.logging = LoggingConfig(
            level=logging_data.get("level", "INFO"),
        )

    return config
