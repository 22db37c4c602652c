"""Application configuration: settings schema, config.yaml loader, and logging setup"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field


CONFIG_FILE = "config.yaml"
ENV_PREFIX = "BLOCKPUB_"
LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


class Settings(BaseModel):
    app_name:       str = "blockpub"
    db_url:         str = "sqlite:///blockpub.db"
    account:        str = Field(default="0x0000000000000000000000000000000000b10c05", description="Publishing wallet address")
    contract_name:  str = Field(default="BUIBlockNFT",   description="Block NFT contract the access condition points at")
    predicate:      str = Field(default="ownerOfBlock",  description="Contract predicate evaluated at key release")
    chain:          str = Field(default="mumbai",        description="Chain name recorded in access conditions")
    publish_price:  int = Field(default=330_000_000_000_000_000, ge=0, description="Local chain publish price in wei")
    confirmation_timeout: float = Field(default=120.0, gt=0, description="Seconds to wait for a transaction to be mined")
    poll_interval:  float = Field(default=0.5, gt=0,     description="Seconds between confirmation polls")
    max_image_bytes: int = Field(default=10 * 1024 * 1024, ge=1, description="Largest accepted cover image")
    policy_key_file: str = Field(default=".blockpub/policy.key", description="Access-policy node master key")
    document_file:  str = Field(default="block.json",    description="Editor session document")
    log_level:      str = Field(default="WARNING", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")


def load_config(overrides: dict[str, Any] = None) -> Settings:
    """Load Settings from config.yaml, then BLOCKPUB_<FIELD> env vars, then non-None CLI overrides."""
    data: dict[str, Any] = {}
    if Path(CONFIG_FILE).exists():
        try:
            data = yaml.safe_load(Path(CONFIG_FILE).read_text()) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid {CONFIG_FILE}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Invalid {CONFIG_FILE}: expected a mapping, got {type(data).__name__}")

    for name in Settings.model_fields:
        if val := os.getenv(f"{ENV_PREFIX}{name.upper()}"):
            data[name] = val

    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**data)


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)
