"""
Unit Tests for ServerConfig
"""

import pytest

from sqlite_flightsql.config import ServerConfig

pytestmark = pytest.mark.unit


class TestServerConfig:

    def test_defaults(self):
        config = ServerConfig()
        assert config.host == "localhost"
        assert config.port == 31337
        assert config.database == ":memory:"
        assert config.batch_size == 1024
        assert config.seed_example_data is True
        assert config.location == "grpc://localhost:31337"

    def test_from_env(self):
        config = ServerConfig.from_env({
            "SQLITE_FLIGHTSQL_HOST": "0.0.0.0",
            "SQLITE_FLIGHTSQL_PORT": "4000",
            "SQLITE_FLIGHTSQL_DATABASE": "/tmp/example.db",
            "SQLITE_FLIGHTSQL_SEED_EXAMPLE_DATA": "false",
            "SQLITE_FLIGHTSQL_LOG_LEVEL": "debug",
            "SQLITE_FLIGHTSQL_JSON_LOGS": "yes",
        })

        assert config.location == "grpc://0.0.0.0:4000"
        assert config.database == "/tmp/example.db"
        assert config.seed_example_data is False
        assert config.log_level == "DEBUG"
        assert config.json_logs is True
        assert config.batch_size == 1024

    def test_unrelated_environment_ignored(self):
        assert ServerConfig.from_env({"PORT": "1"}) == ServerConfig()

    @pytest.mark.parametrize("environ", [
        {"SQLITE_FLIGHTSQL_PORT": "abc"},
        {"SQLITE_FLIGHTSQL_PORT": "70000"},
        {"SQLITE_FLIGHTSQL_BATCH_SIZE": "0"},
        {"SQLITE_FLIGHTSQL_JSON_LOGS": "maybe"},
    ])
    def test_invalid_values(self, environ):
        with pytest.raises(ValueError):
            ServerConfig.from_env(environ)

    def test_overrides_skip_none(self):
        config = ServerConfig().with_overrides(port=0, host=None)
        assert config.port == 0
        assert config.host == "localhost"
