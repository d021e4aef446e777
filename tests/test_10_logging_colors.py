"""Tests for logging color output."""
from __future__ import annotations

import logging
import os
from unittest.mock import patch

import pytest


@pytest.fixture
def colors_on():
    from lms_speaks.core.logging import colors

    original = colors.USE_COLORS
    colors.USE_COLORS = True
    yield
    colors.USE_COLORS = original


@pytest.fixture
def colors_off():
    from lms_speaks.core.logging import colors

    original = colors.USE_COLORS
    colors.USE_COLORS = False
    yield
    colors.USE_COLORS = original


def _record(msg="speech_request", **extra):
    record = logging.LogRecord("lms-speaks.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestColorSupport:

    def test_own_env_disables_colors(self):
        from lms_speaks.core.logging import supports_color

        with patch.dict(os.environ, {"LMS_SPEAKS_NO_COLOR": "1"}):
            assert supports_color() is False

    def test_no_color_standard_env(self):
        from lms_speaks.core.logging import supports_color

        env = {k: v for k, v in os.environ.items() if k != "LMS_SPEAKS_NO_COLOR"}
        env["NO_COLOR"] = "1"
        with patch.dict(os.environ, env, clear=True):
            assert supports_color() is False

    def test_non_tty_disables_colors(self):
        import io

        from lms_speaks.core.logging import supports_color

        with patch("sys.stdout", io.StringIO()):
            assert supports_color() is False


class TestColorCodes:

    def test_colorize_enabled(self, colors_on):
        from lms_speaks.core.logging import Colors, colorize

        result = colorize("test", Colors.RED)
        assert result == f"{Colors.RED}test{Colors.RESET}"

    def test_colorize_disabled(self, colors_off):
        from lms_speaks.core.logging import Colors, colorize

        assert colorize("test", Colors.RED) == "test"

    @pytest.mark.parametrize(
        "tag,attr",
        [("SUCCESS", "BRIGHT_GREEN"), ("FAIL", "BRIGHT_RED"), ("warn", "BRIGHT_YELLOW"), ("other", "WHITE")],
    )
    def test_tag_colors(self, tag, attr):
        from lms_speaks.core.logging import Colors, get_tag_color

        assert get_tag_color(tag) == getattr(Colors, attr)


class TestConsoleFormatter:

    def test_plain_line(self, colors_off):
        from lms_speaks.core.logging import ColoredConsoleFormatter

        line = ColoredConsoleFormatter().format(
            _record(tag="WARN", request_id="abc", extra_data={"requested": "mp3"})
        )
        assert "[ WARN  ]" in line
        assert "(abc)" in line
        assert line.endswith("speech_request requested=mp3")
        assert "\033[" not in line

    def test_timing_color(self, colors_on):
        from lms_speaks.core.logging import ColoredConsoleFormatter, Colors

        fmt = ColoredConsoleFormatter()
        assert f"{Colors.GREEN}0.050s" in fmt.format(_record(seconds=0.05))
        assert f"{Colors.YELLOW}0.500s" in fmt.format(_record(seconds=0.5))
        assert f"{Colors.RED}2.000s" in fmt.format(_record(seconds=2.0))

    def test_nonzero_returncode_red(self, colors_on):
        from lms_speaks.core.logging import ColoredConsoleFormatter, Colors

        line = ColoredConsoleFormatter().format(_record(extra_data={"returncode": 1}))
        assert f"{Colors.RED}returncode=1" in line
