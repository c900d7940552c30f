"""Configuration loading for the Dim Lantern workflow."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path

from dimlantern.constants import DEFAULT_DB_PATH, MIN_RESPONSE_LENGTH

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/dimlantern.json")
DB_ENV_VAR = "DIMLANTERN_DB"


@dataclass
class WikiConfig:
    """Runtime settings: where the knowledge base lives and validation limits."""

    db_path: Path = field(default_factory=lambda: Path(DEFAULT_DB_PATH))
    export_dir: Path = field(default_factory=lambda: Path("exports"))
    min_response_length: int = MIN_RESPONSE_LENGTH

    def __post_init__(self) -> None:
        """Ensure paths are Path objects."""
        if isinstance(self.db_path, str):
            self.db_path = Path(self.db_path)
        if isinstance(self.export_dir, str):
            self.export_dir = Path(self.export_dir)


def load_config(config_path: Path | None = None) -> WikiConfig:
    """Load configuration from JSON, falling back to defaults.

    Reads ``config/dimlantern.json`` when *config_path* is ``None``. A
    missing file yields defaults; unrecognised keys are ignored. The
    ``DIMLANTERN_DB`` environment variable overrides ``db_path``.

    Args:
        config_path: Optional explicit path to the JSON config file.

    Returns:
        WikiConfig populated from file + environment overrides.
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    data: dict = {}
    if config_path.exists():
        with open(config_path) as f:
            data = json.load(f)
        logger.debug("Loaded configuration from %s", config_path)

    field_names = {f.name for f in fields(WikiConfig)}
    kwargs = {k: v for k, v in data.items() if k in field_names}

    env_db = os.environ.get(DB_ENV_VAR)
    if env_db:
        kwargs["db_path"] = env_db

    return WikiConfig(**kwargs)
