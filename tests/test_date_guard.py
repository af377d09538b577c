import pytest

from scrubshot.date_guard import has_date_context, is_likely_yyyymmdd, looks_like_date_or_time


@pytest.mark.parametrize(
    "text",
    ["2024-01-15", "15/01/2024", "01.15.2024", "20241215", "14:30:00", "2:30 PM",
     "January 15, 2024", "15th March 2023", "2024-01-15T10:22:01+02:00"],
)
def test_date_shapes(text):
    assert looks_like_date_or_time(text)


@pytest.mark.parametrize("text", ["123456789012345", "98765432", "order 4411"])
def test_not_dates(text):
    assert not looks_like_date_or_time(text)


def test_yyyymmdd():
    assert is_likely_yyyymmdd("20241215")
    assert not is_likely_yyyymmdd("20241315")
    assert not is_likely_yyyymmdd("2024121")
    assert not is_likely_yyyymmdd("18001215")


def test_date_context_only_on_short_lines():
    assert has_date_context("Meeting on Monday")
    assert has_date_context("sent 10 PM")
    assert not has_date_context("Order number")
    assert not has_date_context("Monday " + "x" * 120)
