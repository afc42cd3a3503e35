from __future__ import annotations

import re
from datetime import UTC, datetime

from fleetgrid.models.import_result import ImportResult
from fleetgrid.services.summary import render_summary_line

"""SUMMARY 行フォーマット契約テスト"""

SUMMARY_PATTERN = re.compile(
    r"^SUMMARY\s+sheets=([0-9]+)\s+rows=([0-9]+)\s+skipped=([0-9]+)\s+"
    r"elapsed_sec=([0-9]+\.?[0-9]*)\s+throughput_rps=([0-9]+\.?[0-9]*)$"
)


def test_summary_pattern_example_line():
    line = "SUMMARY sheets=2 rows=4 skipped=1 elapsed_sec=0.84 throughput_rps=4.762"
    assert SUMMARY_PATTERN.match(line)


def test_rendered_lines_match_contract():
    t = datetime(2025, 1, 1, tzinfo=UTC)
    samples = [
        [],
        [ImportResult("maintenance", "PHP", 1234, 5, t, t, 0.837, 1474.3)],
        [ImportResult("contacts", "A", 1, 0, t, t, 0.0000042, 0.0), ImportResult("contacts", "B", 0, 9, t, t, 3.0, 0.0)],
    ]
    for results in samples:
        line = render_summary_line(results)
        assert SUMMARY_PATTERN.match(line), line
        assert "e-" not in line
