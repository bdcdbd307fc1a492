"""Tests for sheetflow.codec: format registry, xlsx and csv readers/writers."""

import pytest

from sheetflow import codec
from sheetflow.codec import CsvReader, CsvWriter, ExcelReader, ExcelWriter
from sheetflow.exceptions import ConfigurationException, UnsupportedFormatException
from tests.mocks import PEOPLE, PEOPLE_HEADER, read_csv, read_xlsx, write_csv, write_xlsx

# =====================================================================
#   Registry
# =====================================================================


class TestRegistry:
    def test_supported_formats(self):
        assert codec.supported_formats() == ["csv", "xlsx"]

    @pytest.mark.parametrize(
        "path, fmt",
        [("a/b/people.xlsx", "xlsx"), ("PEOPLE.CSV", "csv"), ("noext", "")],
    )
    def test_format_of(self, path, fmt):
        assert codec.format_of(path) == fmt

    def test_ensure_supported_normalizes_case(self):
        assert codec.ensure_supported("XLSX") == "xlsx"

    @pytest.mark.parametrize("fmt", ["ods", "pdf", "", None])
    def test_unsupported_format(self, fmt):
        with pytest.raises(UnsupportedFormatException) as exc_info:
            codec.ensure_supported(fmt, "writing")

        assert isinstance(exc_info.value, ConfigurationException)
        assert "writing" in str(exc_info.value)

    def test_create_reader_picks_codec_by_extension(self, tmp_path):
        assert isinstance(codec.create_reader(str(tmp_path / "a.xlsx"), delimiter=";"), ExcelReader)
        reader = codec.create_reader(str(tmp_path / "a.csv"), delimiter=";")
        assert isinstance(reader, CsvReader)
        assert reader.delimiter == ";"

    def test_create_writer(self):
        assert isinstance(codec.create_writer("xlsx"), ExcelWriter)
        assert isinstance(codec.create_writer("csv"), CsvWriter)

    def test_create_reader_unsupported(self, tmp_path):
        with pytest.raises(UnsupportedFormatException):
            codec.create_reader(str(tmp_path / "a.ods"))


# =====================================================================
#   CSV
# =====================================================================


class TestCsv:
    def test_reads_single_sheet_and_skips_blank_lines(self, tmp_path):
        path = tmp_path / "people.csv"
        path.write_text("Name,Age\nAna,31\n\n,\nBia,27\n", encoding="utf-8")

        with CsvReader() as reader:
            reader.open(str(path))
            sheets = [list(sheet) for sheet in reader.sheets()]

        assert sheets == [[["Name", "Age"], ["Ana", "31"], ["Bia", "27"]]]

    def test_reads_utf8_bom(self, tmp_path):
        path = tmp_path / "bom.csv"
        path.write_bytes("\ufeffName\nAna\n".encode("utf-8"))

        reader = CsvReader()
        reader.open(str(path))
        try:
            assert list(reader.rows()) == [["Name"], ["Ana"]]
        finally:
            reader.close()

    def test_custom_delimiter(self, tmp_path):
        path = write_csv(tmp_path / "semi.csv", ["a", "b"], [["1", "2"]], delimiter=";")

        reader = CsvReader(delimiter=";")
        reader.open(path)
        try:
            assert list(reader.rows()) == [["a", "b"], ["1", "2"]]
        finally:
            reader.close()

    def test_count_rows(self, tmp_path):
        path = write_csv(tmp_path / "people.csv", PEOPLE_HEADER, PEOPLE)
        assert CsvReader.count_rows(path) == 5

    def test_count_rows_header_only_and_empty(self, tmp_path):
        assert CsvReader.count_rows(write_csv(tmp_path / "h.csv", PEOPLE_HEADER, [])) == 0
        empty = tmp_path / "empty.csv"
        empty.write_text("")
        assert CsvReader.count_rows(str(empty)) == 0

    def test_count_rows_counts_records_not_lines(self, tmp_path):
        path = tmp_path / "addresses.csv"
        path.write_text('name,address\nAna,"Rua 1\nApto 2"\n,\nBia,"Rua 3"\n', encoding="utf-8")

        reader = CsvReader()
        reader.open(str(path))
        try:
            rows = list(reader.rows())
        finally:
            reader.close()

        assert rows == [["name", "address"], ["Ana", "Rua 1\nApto 2"], ["Bia", "Rua 3"]]
        assert CsvReader.count_rows(str(path)) == len(rows) - 1

    def test_count_rows_uses_delimiter(self, tmp_path):
        path = tmp_path / "semi.csv"
        path.write_text('a;b\n1;"x\ny"\n;\n', encoding="utf-8")
        assert CsvReader.count_rows(str(path), delimiter=";") == 1

    def test_writer_writes_none_as_empty(self, tmp_path):
        path = str(tmp_path / "out.csv")

        with CsvWriter() as writer:
            writer.open_to(path)
            writer.add_rows([["a", None, 3]])

        assert read_csv(path) == [["a", "", "3"]]

    def test_sheets_before_open(self):
        with pytest.raises(RuntimeError):
            list(CsvReader().sheets())


# =====================================================================
#   XLSX
# =====================================================================


class TestExcel:
    def test_reads_every_sheet_in_order(self, tmp_path):
        path = write_xlsx(
            tmp_path / "multi.xlsx",
            ["Name"],
            [["Ana"]],
            sheets={"Second": (["Name"], [["Bia"], ["Caio"]])},
        )

        reader = ExcelReader()
        reader.open(path)
        try:
            sheets = [list(sheet) for sheet in reader.sheets()]
        finally:
            reader.close()

        assert sheets == [[["Name"], ["Ana"]], [["Name"], ["Bia"], ["Caio"]]]

    def test_skips_blank_rows(self, tmp_path):
        path = write_xlsx(tmp_path / "gaps.xlsx", ["Name", "Age"], [["Ana", 31], [None, None], ["Bia", 27]])

        reader = ExcelReader()
        reader.open(path)
        try:
            assert list(reader.rows()) == [["Name", "Age"], ["Ana", 31], ["Bia", 27]]
        finally:
            reader.close()

    def test_count_rows_excludes_one_header_per_sheet(self, tmp_path):
        path = write_xlsx(
            tmp_path / "multi.xlsx",
            PEOPLE_HEADER,
            PEOPLE,
            sheets={"Second": (PEOPLE_HEADER, PEOPLE[:2])},
        )
        assert ExcelReader.count_rows(path) == 7

    def test_writer_round_trip(self, tmp_path):
        path = str(tmp_path / "out.xlsx")

        writer = ExcelWriter()
        writer.open_to(path)
        writer.add_row(PEOPLE_HEADER)
        writer.add_rows(PEOPLE[:2])
        writer.close()

        assert read_xlsx(path) == [PEOPLE_HEADER, PEOPLE[0], PEOPLE[1]]

    def test_add_row_before_open(self):
        with pytest.raises(RuntimeError):
            ExcelWriter().add_row(["a"])

    def test_registry_count_rows(self, tmp_path):
        path = write_xlsx(tmp_path / "people.xlsx", PEOPLE_HEADER, PEOPLE)
        assert codec.count_rows(path, delimiter=";") == 5
