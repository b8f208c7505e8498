import pytest

from robocrm.extensions import db
from robocrm.models import Contract
from robocrm.services import numbering_service
from robocrm.services.numbering_service import (
    NumberingError,
    next_masked_number,
    next_sequence_value,
    next_sequential_number,
    render_mask,
)


class TestMaskNumbering:

    def test_next_after_highest_of_the_year(self):
        existing = ["CNT-2024-001", "CNT-2024-012", "CNT-2023-099"]
        assert next_masked_number(existing, "CNT-{YYYY}-{NNN}", 2024) == "CNT-2024-013"

    def test_first_of_the_year(self):
        assert next_masked_number(["CNT-2023-099"], "CNT-{YYYY}-{NNN}", 2024) == "CNT-2024-001"

    def test_non_matching_numbers_ignored(self):
        existing = ["CNT-2024-abc", "OTHER-7", "", None]
        assert next_masked_number(existing, "CNT-{YYYY}-{NNN}", 2024) == "CNT-2024-001"

    def test_suffix_mask(self):
        existing = ["R/004/2024", "R/010/2024"]
        assert next_masked_number(existing, "R/{NNN}/{YYYY}", 2024) == "R/011/2024"

    def test_sequence_grows_past_padding(self):
        assert next_sequence_value(["A-999"], "A-", 3) == "A-1000"

    @pytest.mark.parametrize("mask", ["CNT-{YYYY}", "{NNN}-{NNN}"])
    def test_mask_needs_one_sequence_token(self, mask):
        with pytest.raises(NumberingError):
            render_mask(mask, 2024)


class TestSequentialNumbering:

    @pytest.mark.parametrize(
        "latest,expected",
        [
            (None, "CON-00001"),
            ("CON-00041", "CON-00042"),
            ("CNT-2024-007", "CON-00008"),
            ("MANUAL", "CON-00001"),
        ],
    )
    def test_next_from_latest(self, latest, expected):
        assert next_sequential_number(latest) == expected


class TestDatabaseNumbering:

    def _contract(self, number, client):
        row = Contract(contract_number=number, client_id=client.id)
        db.session.add(row)
        db.session.commit()
        return row

    def test_masked_reads_existing_numbers(self, db_session, acme):
        self._contract("CNT-2024-004", acme)
        self._contract("CNT-2025-020", acme)
        assert numbering_service.generate_masked_contract_number("CNT-{YYYY}-{NNN}", 2024) == "CNT-2024-005"

    def test_sequential_uses_most_recent(self, db_session, acme):
        assert numbering_service.generate_sequential_contract_number() == "CON-00001"
        self._contract("CON-00009", acme)
        self._contract("CON-00003", acme)
        # Only the most recent contract is consulted
        assert numbering_service.generate_sequential_contract_number() == "CON-00004"
