"""Output truncation — bound every observation before it reaches the LLM."""

from __future__ import annotations

import os
import tempfile

MAX_LINES = 2000
MAX_BYTES = 50 * 1024  # 50KB
OUTPUT_DIR = "~/.stepwise/tool-output"


def truncate_output(
    text: str,
    max_lines: int = MAX_LINES,
    max_bytes: int = MAX_BYTES,
    save_full: bool = True,
) -> str:
    """Truncate tool output to fit within the context budget.

    The head of the output is kept. When ``save_full`` is set the complete
    text is written to a file under ``~/.stepwise/tool-output`` and the
    notice points at it.
    """
    if not text:
        return text

    lines = text.split("\n")
    byte_count = len(text.encode("utf-8", errors="replace"))
    if len(lines) <= max_lines and byte_count <= max_bytes:
        return text

    full_path = _save_to_file(text) if save_full else None

    kept = lines[:max_lines]
    skipped_lines = len(lines) - len(kept)

    result = "\n".join(kept)
    encoded = result.encode("utf-8", errors="replace")
    skipped_bytes = 0
    if len(encoded) > max_bytes:
        # Cut at a safe UTF-8 boundary
        result = encoded[:max_bytes].decode("utf-8", errors="ignore")
        skipped_bytes = byte_count - max_bytes

    notice_parts = []
    if skipped_lines:
        notice_parts.append(f"{skipped_lines} lines skipped")
    if skipped_bytes:
        notice_parts.append(f"{skipped_bytes} bytes skipped")

    notice = (
        f"[Output truncated: {', '.join(notice_parts)}. "
        f"Total: {len(lines)} lines, {byte_count} bytes]"
    )
    if full_path:
        notice += f"\n[Full output saved to: {full_path}]"

    return f"{result}\n{notice}"


def _save_to_file(text: str) -> str:
    out_dir = os.path.expanduser(OUTPUT_DIR)
    os.makedirs(out_dir, exist_ok=True)
    fd, path = tempfile.mkstemp(prefix="stepwise-", suffix=".txt", dir=out_dir)
    with os.fdopen(fd, "w") as f:
        f.write(text)
    return path
