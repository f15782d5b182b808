from __future__ import annotations

import csv
import json
import re
from pathlib import Path

from sales_ingest.cli import main as cli_main

SUMMARY_RE = re.compile(
    r"^SUMMARY files=(\d+)/(\d+) success=(\d+) failed=(\d+) lines=(\d+) rows=(\d+) "
    r"errors=(\d+) revenue=(\d+\.\d{2}) elapsed_sec=([0-9.]+)$",
    re.MULTILINE,
)


def _write_shopee_csv(path: Path, rows: list[list[object]]) -> None:
    with path.open("w", encoding="utf-8-sig", newline="") as f:
        writer = csv.writer(f)
        for row in rows:
            writer.writerow(["" if v is None else v for v in row])


def test_run_success_tiktok_and_shopee(write_config: Path, temp_workdir: Path, make_xlsx, tiktok_rows, shopee_rows, capsys):
    make_xlsx(temp_workdir / "data" / "TikTok_OrderSKUList_Jan.xlsx", {"OrderSKUList": tiktok_rows})
    _write_shopee_csv(temp_workdir / "data" / "Order.all.2026.csv", shopee_rows)

    code = cli_main([])
    out = capsys.readouterr().out
    assert code == 0

    m = SUMMARY_RE.search(out)
    assert m, out
    files, total, success, failed, lines, rows, errors, revenue, _ = m.groups()
    assert (files, total, success, failed) == ("2", "2", "2", "0")
    assert (lines, rows, errors) == ("6", "6", "0")
    assert revenue == "1038.00"
    assert "Order.all.2026.csv: format=shopee_orders lines=3 orders=2 rows=3 gmv=770.00 dates=2026-01-01..2026-01-02" in out
    assert not list((temp_workdir / "logs").glob("errors-*.log"))


def test_run_partial_failure(write_config: Path, temp_workdir: Path, make_xlsx, tiktok_rows, capsys):
    make_xlsx(temp_workdir / "data" / "TikTok_OrderSKUList_Jan.xlsx", {"OrderSKUList": tiktok_rows})
    make_xlsx(temp_workdir / "data" / "TikTok_OrderSKUList_Feb.xlsx", {"Summary": [["nothing", "here"]]})

    code = cli_main([])
    out = capsys.readouterr().out
    assert code == 2

    m = SUMMARY_RE.search(out)
    assert m, out
    assert m.group(3) == "1"
    assert m.group(4) == "1"
    assert "ERROR TikTok_OrderSKUList_Feb.xlsx: SHEET_NOT_FOUND" in out

    logs = list((temp_workdir / "logs").glob("errors-*.log"))
    assert len(logs) == 1
    records = [json.loads(x) for x in logs[0].read_text(encoding="utf-8").splitlines()]
    assert records == [
        {
            "timestamp": records[0]["timestamp"],
            "file": "TikTok_OrderSKUList_Feb.xlsx",
            "sheet": "<FILE_LEVEL>",
            "row": -1,
            "error_type": "SHEET_NOT_FOUND",
            "message": records[0]["message"],
        }
    ]


def test_run_reimport_in_mock_mode_is_stable(write_config: Path, temp_workdir: Path, make_xlsx, tiktok_rows, capsys):
    make_xlsx(temp_workdir / "data" / "TikTok_OrderSKUList_Jan.xlsx", {"OrderSKUList": tiktok_rows})
    assert cli_main([]) == 0
    first = SUMMARY_RE.search(capsys.readouterr().out).group(7)
    assert cli_main([]) == 0
    second = SUMMARY_RE.search(capsys.readouterr().out).group(7)
    assert first == second == "0"


def test_run_bad_date_cell_does_not_abort_run(write_config: Path, temp_workdir: Path, make_xlsx, tiktok_rows, capsys):
    bad = [list(r) for r in tiktok_rows]
    bad[2][9] = 99999999
    make_xlsx(temp_workdir / "data" / "A_OrderSKUList.xlsx", {"OrderSKUList": bad})
    make_xlsx(temp_workdir / "data" / "B_OrderSKUList.xlsx", {"OrderSKUList": tiktok_rows})

    code = cli_main([])
    out = capsys.readouterr().out
    assert code == 0
    m = SUMMARY_RE.search(out)
    assert m, out
    assert (m.group(3), m.group(5), m.group(7)) == ("2", "5", "1")

    logs = list((temp_workdir / "logs").glob("errors-*.log"))
    record = json.loads(logs[0].read_text(encoding="utf-8").splitlines()[0])
    assert (record["error_type"], record["row"]) == ("ROW_ERROR", 3)
