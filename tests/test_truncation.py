"""Tests for stepwise.tool.truncation."""

from __future__ import annotations

import os

from stepwise.tool import truncation
from stepwise.tool.truncation import MAX_BYTES, MAX_LINES, truncate_output


# ---------------------------------------------------------------------------
# truncate_output
# ---------------------------------------------------------------------------


class TestTruncateOutput:
    def test_empty_string(self) -> None:
        assert truncate_output("") == ""

    def test_within_limits(self) -> None:
        text = "hello\nworld\n"
        assert truncate_output(text) == text

    def test_over_line_limit_keeps_head(self) -> None:
        lines = [f"line {i}" for i in range(MAX_LINES + 500)]
        result = truncate_output("\n".join(lines), save_full=False)
        assert result.startswith("line 0\n")
        assert f"line {MAX_LINES - 1}\n" in result
        assert f"line {MAX_LINES}\n" not in result
        assert "500 lines skipped" in result

    def test_over_byte_limit(self) -> None:
        text = "x" * (MAX_BYTES + 1000)
        result = truncate_output(text, save_full=False)
        assert len(result.encode()) <= MAX_BYTES + 200
        assert "1000 bytes skipped" in result

    def test_multibyte_boundary(self) -> None:
        result = truncate_output("é" * 10, max_bytes=5, save_full=False)
        assert result.startswith("éé\n")

    def test_save_full_creates_file(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setattr(truncation, "OUTPUT_DIR", str(tmp_path))
        text = "\n".join(f"line {i}" for i in range(20))
        result = truncate_output(text, max_lines=5)
        saved = [f for f in os.listdir(tmp_path) if f.startswith("stepwise-")]
        assert len(saved) == 1
        assert str(tmp_path) in result
        with open(tmp_path / saved[0]) as f:
            assert f.read() == text

    def test_save_full_false(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setattr(truncation, "OUTPUT_DIR", str(tmp_path))
        text = "\n".join(f"line {i}" for i in range(20))
        result = truncate_output(text, max_lines=5, save_full=False)
        assert "Full output saved" not in result
        assert os.listdir(tmp_path) == []

    def test_exact_line_limit(self) -> None:
        text = "\n".join(f"line {i}" for i in range(MAX_LINES))
        assert truncate_output(text) == text
