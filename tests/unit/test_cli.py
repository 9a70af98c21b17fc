"""Unit tests for the command-line interface."""

import json
from pathlib import Path

import pytest

from bcp_email_extractor.cli import main


@pytest.fixture
def write_file(tmp_path: Path):
    def _write(name: str, content: str) -> str:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return str(path)

    return _write


class TestParseCommand:
    """Test suite for the parse subcommand."""

    def test_prints_transaction_json(self, write_file, transfer_body: str, capsys) -> None:
        path = write_file("transfer.txt", transfer_body)

        exit_code = main(["parse", path])

        payload = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert payload["template"] == "account_transfer"
        assert payload["amount"] == {"value": "1250.00", "currency": "PEN"}
        assert payload["operationId"] == "04807225"

    def test_one_line_per_file(
        self, write_file, transfer_body: str, fee_commission_body: str, capsys
    ) -> None:
        paths = [write_file("a.txt", transfer_body), write_file("b.txt", fee_commission_body)]

        assert main(["parse", *paths]) == 0

        lines = capsys.readouterr().out.strip().splitlines()
        assert [json.loads(line)["template"] for line in lines] == [
            "account_transfer",
            "fee_commission",
        ]

    def test_no_transaction(self, write_file, capsys) -> None:
        path = write_file("empty.txt", "Hola, este es un mensaje sin montos.")

        assert main(["parse", path]) == 1
        assert capsys.readouterr().out == ""

    def test_min_confidence_filters(
        self, write_file, minimal_transfer_body: str, capsys
    ) -> None:
        path = write_file("minimal.txt", minimal_transfer_body)

        assert main(["parse", path, "--min-confidence", "0.99"]) == 1
        assert capsys.readouterr().out == ""
        assert main(["parse", path, "--min-confidence", "0.8"]) == 0

    def test_received_at_fills_missing_date(self, write_file, capsys) -> None:
        path = write_file("undated.txt", "Monto transferido: S/ 10.00\nOperacion: 123")

        exit_code = main(["parse", path, "--received-at", "2025-10-06T08:00:00-05:00"])

        payload = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert payload["occurredAt"] == "2025-10-06T08:00:00-05:00"

    def test_invalid_received_at(self, write_file, transfer_body: str) -> None:
        path = write_file("transfer.txt", transfer_body)

        assert main(["parse", path, "--received-at", "yesterday"]) == 1

    def test_missing_file(self, tmp_path: Path) -> None:
        assert main(["parse", str(tmp_path / "missing.txt")]) == 1


class TestDedupeCommand:
    """Test suite for the dedupe subcommand."""

    def test_drops_duplicates(self, write_file, capsys) -> None:
        record = {"date": "2025-10-05T14:30:00-05:00", "amount": 150.5, "operationNumber": "1"}
        later = {"_id": "c", "date": "2025-10-07T10:00:00-05:00", "amount": 9.0}
        path = write_file(
            "records.json",
            json.dumps([{"_id": "a", **record}, {"_id": "b", **record}, later]),
        )

        exit_code = main(["dedupe", path])

        unique = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert [item["_id"] for item in unique] == ["c", "a"]

    def test_keep_last(self, write_file, capsys) -> None:
        record = {"date": "2025-10-05T14:30:00-05:00", "amount": 150.5}
        records = [{"_id": "a", **record}, {"_id": "b", **record}]
        path = write_file("records.json", json.dumps(records))

        assert main(["dedupe", path, "--keep", "last"]) == 0
        assert [item["_id"] for item in json.loads(capsys.readouterr().out)] == ["b"]

    @pytest.mark.parametrize("content", ["{not json", '{"_id": "a"}'])
    def test_invalid_input(self, write_file, content: str) -> None:
        assert main(["dedupe", write_file("bad.json", content)]) == 1


def test_command_is_required() -> None:
    with pytest.raises(SystemExit):
        main([])
