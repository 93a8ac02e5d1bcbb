import csv
import sys
import os
import logging

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from main import main


@pytest.fixture(autouse=True)
def restore_root_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def run(tmp_path, capsys, lines, environ=None):
    csv_file = tmp_path / "test.csv"
    csv_file.write_text('\n'.join(lines))
    status = main(["main.py", str(csv_file)], environ or {})
    captured = capsys.readouterr()
    return status, captured.out.splitlines(), captured.err


class TestMain:
    def test_basic_transactions(self, tmp_path, capsys):
        status, out, _ = run(tmp_path, capsys, [
            "type, client, tx, amount",
            "deposit, 1, 1, 1.0",
            "deposit, 2, 2, 2.0",
            "deposit, 1, 3, 2.0",
            "withdrawal, 1, 4, 1.5",
            "withdrawal, 2, 5, 3.0",
        ])

        assert status == 0
        assert out == [
            "client,available,held,total,locked",
            "1,1.5000,0.0000,1.5000,false",
            "2,2.0000,0.0000,2.0000,false",
        ]

    def test_dispute_chargeback(self, tmp_path, capsys):
        _, out, _ = run(tmp_path, capsys, [
            "type, client, tx, amount",
            "deposit, 1, 1, 5.0",
            "dispute, 1, 1,",
            "chargeback, 1, 1,",
            "deposit, 1, 2, 10.0",
        ])

        assert out[1:] == ["1,0.0000,0.0000,0.0000,true"]

    def test_dispute_resolve(self, tmp_path, capsys):
        _, out, _ = run(tmp_path, capsys, [
            "type, client, tx, amount",
            "deposit, 3, 10, 8.0",
            "dispute, 3, 10,",
            "resolve, 3, 10,",
        ])

        assert out[1:] == ["3,8.0000,0.0000,8.0000,false"]

    def test_invalid_reference_creates_no_account(self, tmp_path, capsys):
        _, out, _ = run(tmp_path, capsys, [
            "type, client, tx, amount",
            "dispute, 4, 999,",
        ])

        assert out == ["client,available,held,total,locked"]

    def test_multiple_disputes_same_client(self, tmp_path, capsys):
        _, out, _ = run(tmp_path, capsys, [
            "type, client, tx, amount",
            "deposit, 1, 1, 100.0",
            "deposit, 1, 2, 50.0",
            "dispute, 1, 1,",
            "dispute, 1, 2,",
            "resolve, 1, 1,",
            "chargeback, 1, 2,",
        ])

        # After resolve tx1: available=100, held=50; chargeback tx2 removes the 50 and locks
        assert out[1:] == ["1,100.0000,0.0000,100.0000,true"]

    def test_redispute_after_resolve_rejected(self, tmp_path, capsys):
        _, out, _ = run(tmp_path, capsys, [
            "type, client, tx, amount",
            "deposit, 1, 1, 100.0",
            "dispute, 1, 1,",
            "resolve, 1, 1,",
            "dispute, 1, 1,",
            "chargeback, 1, 1,",
        ])

        assert out[1:] == ["1,100.0000,0.0000,100.0000,false"]

    def test_malformed_rows_skipped(self, tmp_path, capsys):
        status, out, _ = run(tmp_path, capsys, [
            "type, client, tx, amount",
            "deposit, 1, 1, 100.0",
            "DEPOSIT, 1, 2, 100.0",
            "deposit, 70000, 3, 1.0",
            "deposit, 1, 4, abc",
            "withdrawal, 1, 5,",
            "deposit, 1, 6, 0.12345",
        ])

        assert status == 0
        assert out[1:] == ["1,100.0000,0.0000,100.0000,false"]

    def test_accounts_sorted_by_client(self, tmp_path, capsys):
        _, out, _ = run(tmp_path, capsys, [
            "type, client, tx, amount",
            "deposit, 10, 1, 1",
            "deposit, 2, 2, 1",
            "deposit, 7, 3, 1",
        ])

        assert [line.split(",")[0] for line in out[1:]] == ["2", "7", "10"]

    def test_missing_file_exits_nonzero(self, tmp_path, capsys):
        status = main(["main.py", str(tmp_path / "missing.csv")], {"LEDGER_LOG": "error"})
        captured = capsys.readouterr()

        assert status == 1
        assert captured.out == ""
        assert "ERROR: Cannot read" in captured.err

    def test_invalid_utf8_row_skipped(self, tmp_path, capsys):
        csv_file = tmp_path / "test.csv"
        csv_file.write_bytes(b"type,client,tx,amount\ndeposit,1,1,1.0\ndeposit,1,2,\xff\xfe\n")

        status = main(["main.py", str(csv_file)], {})
        out = capsys.readouterr().out.splitlines()

        assert status == 0
        assert out[1:] == ["1,1.0000,0.0000,1.0000,false"]

    def test_unparseable_csv_exits_nonzero(self, tmp_path, capsys):
        csv_file = tmp_path / "test.csv"
        csv_file.write_text("type,client,tx,amount\ndeposit,1,1," + "1" * (csv.field_size_limit() + 1) + "\n")

        status = main(["main.py", str(csv_file)], {"LEDGER_LOG": "error"})
        captured = capsys.readouterr()

        assert status == 1
        assert captured.out == ""
        assert "ERROR: Cannot parse" in captured.err

    def test_usage(self, capsys):
        status = main(["main.py"], {})
        assert status == 2
        assert "Usage" in capsys.readouterr().err

    def test_logging_off_by_default(self, tmp_path, capsys):
        _, _, err = run(tmp_path, capsys, [
            "type, client, tx, amount",
            "withdrawal, 1, 1, 5.0",
        ])

        assert err == ""

    def test_warn_level_reports_discards(self, tmp_path, capsys):
        _, _, err = run(tmp_path, capsys, [
            "type, client, tx, amount",
            "withdrawal, 1, 1, 5.0",
        ], {"LEDGER_LOG": "warn"})

        assert "WARNING: Discarded" in err
        assert "no_such_account" in err

    def test_info_level_reports_summary(self, tmp_path, capsys):
        _, _, err = run(tmp_path, capsys, [
            "type, client, tx, amount",
            "deposit, 1, 1, 5.0",
            "bacon, 1, 2, 5.0",
            "withdrawal, 1, 3, 9.0",
        ], {"LEDGER_LOG": "info"})

        assert "Applied: 1, Discarded: 1, Malformed: 1" in err
