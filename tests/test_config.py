import pytest

import cryptotrendbot.config as config


def test_parse_duration():
    assert config.parse_duration("60") == 60
    assert config.parse_duration("30s") == 30
    assert config.parse_duration("15m") == 900
    assert config.parse_duration("1H") == 3600
    with pytest.raises(ValueError):
        config.parse_duration("soon")


def test_format_interval_basic():
    assert config.format_interval(300) == "5m"
    assert config.format_interval(3600) == "1h"
    assert config.format_interval(45) == "45s"
    assert config.format_interval(86400) == "1d"


def test_parse_list():
    assert config.parse_list("sol, btc,,eth ") == ["SOL", "BTC", "ETH"]
    assert config.parse_list("") == []


def test_signal_timeframes_are_supported():
    assert set(config.SIGNAL_TIMEFRAMES) <= set(config.TIMEFRAMES)
