"""
Process configuration: dotenv file, HUBGRAPH_* environment variables, then command line flags.
"""

import argparse
import os
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from dotenv import load_dotenv
from loguru import logger
from pydantic import BaseModel, Field

DEFAULT_DOTENV = "hubgraph.env"


class HubGraphConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)
    pages: int = Field(default=3, ge=1)
    # 0 means derive the delay from the API poll interval hint
    delay: int = Field(default=0, ge=0)
    token: str = ""
    log_level: str = "INFO"
    request_timeout: int = Field(default=30, ge=1)
    max_rate_limit_retries: Optional[int] = Field(default=None, ge=0)
    recompute_interval: bool = False
    backoff_base: int = Field(default=5, ge=1)
    backoff_max: int = Field(default=300, ge=1)


def _env_values() -> Dict[str, Any]:
    """Collect the config values set in the environment, leaving pydantic to coerce and validate them"""
    values: Dict[str, Any] = {}
    for field_name in HubGraphConfig.model_fields:
        raw = os.getenv(f"HUBGRAPH_{field_name.upper()}")
        if raw is not None and raw != "":
            values[field_name] = raw

    if "token" not in values and os.getenv("GITHUB_TOKEN"):
        values["token"] = os.getenv("GITHUB_TOKEN")
    return values


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Serve a live graph of the latest public GitHub events")
    parser.add_argument("--port", type=int, help="The port to listen on (default: 3000)")
    parser.add_argument(
        "--pages", type=int, help="How many pages to read per refresh (will impact rate limiting dramatically!)"
    )
    parser.add_argument(
        "--delay", type=int, help="Delay in seconds between refreshes (default: derived from the API poll interval)"
    )
    parser.add_argument(
        "--token", type=str, help="Token to authenticate requests with (5000 req/hr instead of 60 req/hr)"
    )
    parser.add_argument("--dotenv", type=str, default=DEFAULT_DOTENV, help=f"Path to .env file (default: {DEFAULT_DOTENV})")
    return parser


def load_config(argv: Optional[Sequence[str]] = None, dotenv_path: Optional[str] = None) -> HubGraphConfig:
    args = build_arg_parser().parse_args(argv)

    env_file = dotenv_path or args.dotenv
    if Path(env_file).exists():
        load_dotenv(env_file)
        logger.info(f"Loaded environment variables from {env_file}")
    else:
        logger.debug(f"Environment file {env_file} not found, using system environment")

    values = _env_values()
    for flag in ("port", "pages", "delay", "token"):
        value = getattr(args, flag)
        if value is not None:
            values[flag] = value

    return HubGraphConfig.model_validate(values)
