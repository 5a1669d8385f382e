from pathlib import Path

import pytest

from main import main

LEDGER_CSV = """id,type,asset_id,timestamp,amount,proceeds,cost_basis,fee
buy-a,BUY,BTC,2024-01-01T00:00:00Z,10,,1000,
buy-b,BUY,BTC,2024-06-01T00:00:00Z,5,,600,
sell,SELL,BTC,2025-01-01T00:00:00Z,-12,1800,,20
"""


@pytest.fixture()
def ledger_csv(tmp_path: Path) -> Path:
    path = tmp_path / "ledger.csv"
    path.write_text(LEDGER_CSV, encoding="utf-8")
    return path


def test_main_prints_replay_positions_and_tax_year(
    ledger_csv: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    main(["--csv", str(ledger_csv), "--db", str(tmp_path / "ledger.db"), "--year", "2025", "--price", "BTC=150"])
    output = capsys.readouterr().out

    assert "Replay summary (FIFO):" in output
    assert "Realized gain: 540" in output
    assert "Open positions:" in output
    assert "Tax year 2025 (EUR, profile GENERIC, lot method FIFO)" in output
    assert "Realized gain: 540.00" in output
    assert (tmp_path / "ledger.db").exists()


def test_main_lot_method_override_and_dump(
    ledger_csv: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    dump_dir = tmp_path / "dumps"

    main(
        [
            "--csv",
            str(ledger_csv),
            "--db",
            str(tmp_path / "ledger.db"),
            "--year",
            "2025",
            "--lot-method",
            "LIFO",
            "--dump-dir",
            str(dump_dir),
        ]
    )
    output = capsys.readouterr().out

    assert "Replay summary (LIFO):" in output
    assert "lot method LIFO" in output
    assert len(list(dump_dir.glob("*/tax_report_2025.json"))) == 1
    assert len(list(dump_dir.glob("*/disposal_lots.csv"))) == 1


def test_main_exits_with_code_2_on_invalid_ledger(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = tmp_path / "bad.csv"
    path.write_text("id,type,asset_id,timestamp,amount\nb1,BUY,BTC,2024-01-01T00:00:00Z,-1\n", encoding="utf-8")

    with pytest.raises(SystemExit) as exc_info:
        main(["--csv", str(path), "--db", str(tmp_path / "ledger.db")])

    assert exc_info.value.code == 2
    assert "acquisition amount must be >= 0" in capsys.readouterr().err


def test_main_rejects_malformed_price(ledger_csv: Path, tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as exc_info:
        main(["--csv", str(ledger_csv), "--db", str(tmp_path / "ledger.db"), "--price", "BTC"])

    assert exc_info.value.code == 2
