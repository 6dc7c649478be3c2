import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from hubgraph.app import create_scheduler
from hubgraph.config import HubGraphConfig, load_config


@pytest.fixture(autouse=True)
def clean_env():
    with patch.dict(os.environ, {}, clear=True):
        yield


def missing_dotenv(tmp_path) -> str:
    return str(tmp_path / "missing.env")


class TestLoadConfig:
    def test_defaults(self, tmp_path):
        config = load_config([], dotenv_path=missing_dotenv(tmp_path))

        assert config == HubGraphConfig()
        assert config.pages == 3
        assert config.delay == 0
        assert config.token == ""
        assert config.port == 3000

    def test_environment_variables(self, tmp_path):
        os.environ.update({"HUBGRAPH_PAGES": "5", "HUBGRAPH_DELAY": "90", "HUBGRAPH_RECOMPUTE_INTERVAL": "true"})

        config = load_config([], dotenv_path=missing_dotenv(tmp_path))

        assert config.pages == 5
        assert config.delay == 90
        assert config.recompute_interval is True

    def test_github_token_fallback(self, tmp_path):
        os.environ["GITHUB_TOKEN"] = "ghp_env"

        assert load_config([], dotenv_path=missing_dotenv(tmp_path)).token == "ghp_env"

    def test_flags_override_environment(self, tmp_path):
        os.environ.update({"HUBGRAPH_PAGES": "5", "HUBGRAPH_TOKEN": "ghp_env"})

        config = load_config(["--pages", "2", "--token", "ghp_flag", "--port", "8080"], dotenv_path=missing_dotenv(tmp_path))

        assert config.pages == 2
        assert config.token == "ghp_flag"
        assert config.port == 8080

    def test_dotenv_file(self, tmp_path):
        env_file = tmp_path / "hubgraph.env"
        env_file.write_text("HUBGRAPH_PAGES=7\nHUBGRAPH_LOG_LEVEL=DEBUG\n")

        config = load_config(["--dotenv", str(env_file)])

        assert config.pages == 7
        assert config.log_level == "DEBUG"

    @pytest.mark.parametrize("argv", [["--pages", "0"], ["--delay", "-1"]])
    def test_invalid_values_rejected(self, tmp_path, argv):
        with pytest.raises(ValidationError):
            load_config(argv, dotenv_path=missing_dotenv(tmp_path))


def test_create_scheduler_from_config(publisher):
    config = HubGraphConfig(pages=4, delay=45, token="ghp_secret", max_rate_limit_retries=2, request_timeout=10)

    scheduler = create_scheduler(config)

    assert scheduler.page_count == 4
    assert scheduler.refresh_delay == 45
    assert scheduler.token == "ghp_secret"
    assert scheduler.max_rate_limit_retries == 2
    assert scheduler.source.timeout == 10
    assert scheduler.publisher is publisher
