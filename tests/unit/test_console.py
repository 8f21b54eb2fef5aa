"""Tests for the console output module."""

import io

import pytest
from rich.console import Console

from fetchhar.console import (
    entries_table,
    error,
    format_size,
    print_entries,
    status_style,
    success,
    warn,
)


def make_entry(url: str, status: int = 200, size: int = 12, method: str = "GET") -> dict:
    return {
        "request": {"method": method, "url": url},
        "response": {"status": status, "content": {"size": size}},
        "time": 42.5,
    }


class TestConsoleHelpers:
    """Tests for console helper functions."""

    def test_success_outputs_green_check(self) -> None:
        """Test success prints green checkmark to stderr."""
        buf = io.StringIO()
        test_console = Console(file=buf, stderr=True, no_color=True)
        success("Wrote 3 entries", console=test_console)
        output = buf.getvalue()
        assert "✓ Wrote 3 entries" in output

    def test_error_outputs_red_x(self) -> None:
        """Test error prints red X to stderr."""
        buf = io.StringIO()
        test_console = Console(file=buf, stderr=True, no_color=True)
        error("Failed", console=test_console)
        assert "✗ Failed" in buf.getvalue()

    def test_warn_outputs_yellow(self) -> None:
        buf = io.StringIO()
        test_console = Console(file=buf, stderr=True, no_color=True)
        warn("No requests were recorded", console=test_console)
        assert "No requests were recorded" in buf.getvalue()


class TestStatusStyle:
    """Tests for status_style."""

    @pytest.mark.parametrize(
        ("status", "style"),
        [(200, "green"), (204, "green"), (302, "yellow"), (404, "red"), (503, "red"), (0, "red")],
    )
    def test_styles(self, status: int, style: str) -> None:
        assert status_style(status) == style


class TestFormatSize:
    """Tests for format_size."""

    @pytest.mark.parametrize(
        ("size", "text"),
        [(-1, "-"), (0, "0 B"), (1023, "1023 B"), (2048, "2.0 KiB"), (5 * 1024 * 1024, "5.0 MiB")],
    )
    def test_formats(self, size: int, text: str) -> None:
        assert format_size(size) == text


class TestEntriesTable:
    """Tests for the recorded-entries summary."""

    def test_one_row_per_entry(self) -> None:
        table = entries_table(
            [make_entry("https://example.com/old", 302, 0), make_entry("https://example.com/new")]
        )
        assert table.title == "Captured Requests"
        assert table.row_count == 2

    def test_print_entries_renders_rows(self) -> None:
        buf = io.StringIO()
        test_console = Console(file=buf, stderr=True, no_color=True, width=160)
        print_entries([make_entry("https://example.com/api", method="POST")], console=test_console)
        output = buf.getvalue()
        assert "https://example.com/api" in output
        assert "POST" in output
        assert "12 B" in output
        assert "42.5" in output

    def test_print_entries_warns_when_empty(self) -> None:
        buf = io.StringIO()
        test_console = Console(file=buf, stderr=True, no_color=True)
        print_entries([], console=test_console)
        output = buf.getvalue()
        assert "No requests were recorded" in output
        assert "Captured Requests" not in output
