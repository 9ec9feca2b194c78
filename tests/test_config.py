from __future__ import annotations

from pathlib import Path

import pytest

from mongobench.config import (
    ConfigError,
    cumulative_total,
    database_from_uri,
    load_settings,
    parse_ranges,
)


def test_defaults_without_environment():
    settings = load_settings([], env={})

    assert settings.key == "benchmark"
    assert settings.database == "mongobench"
    assert settings.pool_size == 10
    assert settings.concurrency == 10
    assert settings.ranges == (1000,)
    assert settings.cert_path is None
    assert settings.output_dir == Path("results")
    assert settings.fail_fast is False
    assert settings.charts is True


def test_environment_values_are_used():
    env = {
        "KEY": "atlas",
        "MONGO_URI": "mongodb://db.example:27017/perf?retryWrites=true",
        "MONGO_POOL_SIZE": "50",
        "TEST_INSERT_CONCURRENCY": "25",
        "TEST_RANGES": "100, 400,,500",
        "MONGO_CERT": "certs/ca.pem",
        "TEST_FAIL_FAST": "true",
    }
    settings = load_settings([], env=env)

    assert settings.key == "atlas"
    assert settings.database == "perf"
    assert settings.pool_size == 50
    assert settings.concurrency == 25
    assert settings.ranges == (100, 400, 500)
    assert settings.totals() == [100, 500, 1000]
    assert settings.cert_path == Path("certs/ca.pem")
    assert settings.fail_fast is True


def test_flags_override_environment():
    settings = load_settings(
        ["--concurrency", "3", "--ranges", "7", "--database", "other", "--no-charts", "--skip-insert"],
        env={"TEST_INSERT_CONCURRENCY": "25"},
    )

    assert settings.concurrency == 3
    assert settings.ranges == (7,)
    assert settings.database == "other"
    assert settings.charts is False
    assert settings.skip_insert is True


@pytest.mark.parametrize("value", ["abc", "0", "-4"])
def test_invalid_concurrency_rejected(value):
    with pytest.raises(ConfigError):
        load_settings(["--concurrency", value], env={})


@pytest.mark.parametrize("value", ["", " , ", "10,x", "10,0"])
def test_invalid_ranges_rejected(value):
    with pytest.raises(ConfigError):
        parse_ranges(value)


def test_cumulative_total():
    ranges = [1000, 4000, 5000]
    assert cumulative_total(ranges, 0) == 1000
    assert cumulative_total(ranges, 1) == 5000
    assert cumulative_total(ranges, 2) == 10000
    with pytest.raises(IndexError):
        cumulative_total(ranges, 3)


def test_database_from_uri_fallback():
    assert database_from_uri("mongodb://localhost:27017") == "mongobench"
    assert database_from_uri("mongodb://localhost:27017/", fallback="x") == "x"
