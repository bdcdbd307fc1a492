"""Tests for sheetflow.headers: header normalization and row zipping."""

import pytest

from sheetflow.headers import header_keys, normalize_header, zip_row

# =====================================================================
#   normalize_header
# =====================================================================


class TestNormalizeHeader:
    @pytest.mark.parametrize(
        "cell, expected",
        [
            ("Name", "name"),
            ("Full Name", "full_name"),
            ("E-mail Address", "e_mail_address"),
            ("  Total (R$)  ", "total_r"),
            ("Endereço", "endereco"),
            ("Ação Nº", "acao_no"),
            (2024, "2024"),
            ("", ""),
            (None, ""),
            ("---", ""),
        ],
    )
    def test_cases(self, cell, expected):
        assert normalize_header(cell) == expected


# =====================================================================
#   header_keys
# =====================================================================


class TestHeaderKeys:
    def test_plain_header(self):
        assert header_keys(["Name", "Email", "Age"]) == ["name", "email", "age"]

    def test_empty_cells_get_positional_names(self):
        assert header_keys(["Name", None, "", "Age"]) == ["name", "column_2", "column_3", "age"]

    def test_duplicates_are_suffixed(self):
        assert header_keys(["Phone", "phone", "PHONE"]) == ["phone", "phone_2", "phone_3"]

    def test_keys_are_unique(self):
        keys = header_keys(["a", "a", "a_2", None, "column_4"])
        assert len(keys) == len(set(keys))


# =====================================================================
#   zip_row
# =====================================================================


class TestZipRow:
    def test_exact_width(self):
        assert zip_row(["a", "b"], [1, 2]) == {"a": 1, "b": 2}

    def test_missing_cells_are_none(self):
        assert zip_row(["a", "b", "c"], [1]) == {"a": 1, "b": None, "c": None}

    def test_extra_cells_are_dropped(self):
        assert zip_row(["a"], [1, 2, 3]) == {"a": 1}
