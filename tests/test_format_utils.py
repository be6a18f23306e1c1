"""Tests for format_utils.py display helpers."""

from __future__ import annotations

from datetime import datetime

import pytest

from format_utils import (
    format_display_date,
    format_duration,
    format_file_size,
    format_percentage,
    month_key,
    month_label,
)


class TestFormatFileSize:
    @pytest.mark.parametrize(
        "size, expected",
        [
            (0, "0 Bytes"),
            (-5, "0 Bytes"),
            (500, "500 Bytes"),
            (1024, "1 KB"),
            (1536, "1.5 KB"),
            (5 * 1024 * 1024, "5 MB"),
            (3 * 1024 ** 3, "3 GB"),
        ],
    )
    def test_sizes(self, size, expected):
        assert format_file_size(size) == expected


class TestFormatDuration:
    @pytest.mark.parametrize(
        "minutes, expected",
        [
            (0.5, "30 sec"),
            (12, "12 min"),
            (60, "1h"),
            (125, "2h 5m"),
            (1440, "1d"),
            (1620, "1d 3h"),
        ],
    )
    def test_durations(self, minutes, expected):
        assert format_duration(minutes) == expected


class TestFormatPercentage:
    def test_share(self):
        assert format_percentage(1, 4) == "25.0%"

    def test_zero_total(self):
        assert format_percentage(3, 0) == "0%"


class TestDates:
    def test_display_date_unpadded(self):
        assert format_display_date(datetime(2023, 5, 2, 9, 0)) == "5/2/2023"

    def test_display_date_missing(self):
        assert format_display_date(None) == "Unknown date"

    def test_month_key_and_label(self):
        key = month_key(datetime(2022, 12, 31))
        assert key == "2022-12"
        assert month_label(key) == "Dec 2022"

    def test_month_labels_are_english_abbreviations(self):
        labels = [month_label(f"2023-{month:02d}") for month in range(1, 13)]
        assert labels == [
            "Jan 2023", "Feb 2023", "Mar 2023", "Apr 2023", "May 2023", "Jun 2023",
            "Jul 2023", "Aug 2023", "Sep 2023", "Oct 2023", "Nov 2023", "Dec 2023",
        ]

    def test_bad_month_key_returned_as_is(self):
        assert month_label("someday") == "someday"
