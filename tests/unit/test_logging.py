"""
Logging Configuration Unit Tests

Checks the dictConfig schema built from settings values.
"""

from restcrud.core.logging import build_logging_config


def test_levels_follow_settings():
    config = build_logging_config("debug")

    assert config["root"]["level"] == "DEBUG"
    assert config["loggers"]["restcrud"]["level"] == "DEBUG"
    assert config["loggers"]["sqlalchemy.engine"]["level"] == "WARNING"


def test_sql_echo_enables_statement_logging():
    config = build_logging_config("INFO", sql_echo=True)

    assert config["loggers"]["sqlalchemy.engine"]["level"] == "INFO"
    assert config["loggers"]["sqlalchemy.engine"]["propagate"] is False
