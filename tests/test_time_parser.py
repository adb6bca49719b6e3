import logging

import pytest

from trivia_scraper.scrapers.time_parser import (
    DEFAULT_TIME,
    format_time_text,
    normalize_time_text,
    parse_day_of_week,
    parse_time,
    parse_time_text,
)


@pytest.mark.parametrize(
    "text, day, start",
    [
        ("Tuesdays, 6.30pm", 2, "18:30"),
        ("Every Thursday at 8pm", 4, "20:00"),
        ("Wednesday 7:00 PM", 3, "19:00"),
        ("Sunday 7.30", 7, "19:30"),
        ("Thursday 19:30", 4, "19:30"),
        ("Saturday 06:30", 6, "06:30"),
        ("Monday 12am", 1, "00:00"),
        ("Friday 12pm", 5, "12:00"),
        ("Every Tuesday at 7pm (Book: call the bar)", 2, "19:00"),
        ("Tuesday 7-9pm", 2, "19:00"),
        ("Friday 7.30 - 10pm", 5, "19:30"),
        ("Sunday 11am to 1pm", 7, "11:00"),
        ("Monday 7:30pm-9:30pm", 1, "19:30"),
    ],
)
def test_parse_time_text(text, day, start):
    result = parse_time_text(text)
    assert result.day_of_week == day
    assert result.start_time == start
    assert result.used_default is False


def test_unparseable_time_defaults_and_warns(caplog):
    with caplog.at_level(logging.WARNING):
        result = parse_time_text("Thursday, check Facebook", context="https://example.com/venue")

    assert result.day_of_week == 4
    assert result.start_time == DEFAULT_TIME
    assert result.used_default is True
    assert "https://example.com/venue" in caplog.text


def test_out_of_range_times_default():
    assert parse_time("25:00") is None
    assert parse_time("13pm") is None
    assert parse_time_text("Wednesday 25:00").start_time == DEFAULT_TIME


def test_parse_never_raises_on_empty_input():
    result = parse_time_text(None)
    assert result.day_of_week is None
    assert result.start_time == DEFAULT_TIME


def test_normalize_time_text():
    assert normalize_time_text("Every Tuesday at 7pm (Book: ring us)") == "tuesday 7pm"
    assert normalize_time_text("Mondays, 8pm\nFree entry") == "mondays 8pm"


def test_parse_day_of_week():
    assert parse_day_of_week("Thursdays") == 4
    assert parse_day_of_week("weekly quiz") is None


def test_format_time_text():
    assert format_time_text(4, "19:00") == "Thursday 19:00"
    assert format_time_text(None, "19:00") == "19:00"
