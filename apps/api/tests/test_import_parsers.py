"""Tests for CSV parsing."""

from __future__ import annotations

import pytest

from app.imports.parsers import CSVParser, detect_delimiter, parse_csv


class TestDetectDelimiter:
    """Tests for detect_delimiter."""

    def test_comma(self):
        assert detect_delimiter(b"first_name,last_name,email\nJohn,Doe,john@test.com") == ","

    def test_semicolon(self):
        assert detect_delimiter("name;email;phone\nAda;ada@example.com;555-0100\n") == ";"

    def test_tab(self):
        assert detect_delimiter(b"name\temail\nAda\tada@example.com\n") == "\t"

    def test_single_column_defaults_to_comma(self):
        assert detect_delimiter(b"name\nAda\nBob\n") == ","

    def test_empty(self):
        assert detect_delimiter(b"") == ","


class TestCSVParser:
    """Tests for CSVParser."""

    def test_parse_headers(self):
        parser = CSVParser()
        csv_content = b"first_name, last_name ,email\nJohn,Doe,john@test.com"
        assert parser.parse_headers(csv_content) == ["first_name", "last_name", "email"]

    def test_parse_rows(self):
        parser = CSVParser()
        csv_content = b"first_name,last_name,email\nJohn,Doe,john@test.com\nJane,Smith,jane@test.com"
        rows = list(parser.parse_rows(csv_content))
        assert len(rows) == 2
        assert rows[0] == {"first_name": "John", "last_name": "Doe", "email": "john@test.com"}
        assert rows[1]["email"] == "jane@test.com"

    def test_values_stay_strings(self):
        parser = CSVParser(delimiter=",")
        csv_content = b"zip,amount,vanid,note\n00501,19.90,NA,\n"
        row = next(parser.parse_rows(csv_content))
        assert row == {"zip": "00501", "amount": "19.90", "vanid": "NA", "note": ""}

    def test_values_are_trimmed(self):
        parser = CSVParser(delimiter=",")
        row = next(parser.parse_rows(b"name,email\n  Ada  , ada@example.com \n"))
        assert row == {"name": "Ada", "email": "ada@example.com"}

    def test_quoted_values_keep_delimiters(self):
        parser = CSVParser(delimiter=",")
        csv_content = b'name,emails\nAda,"ada@example.com, ada@work.com"\n'
        row = next(parser.parse_rows(csv_content))
        assert row["emails"] == "ada@example.com, ada@work.com"

    def test_utf8_bom_stripped(self):
        parser = CSVParser(delimiter=",")
        csv_content = "﻿name,email\nZoë,zoe@example.com\n".encode("utf-8")
        assert parser.parse_headers(csv_content) == ["name", "email"]
        assert next(parser.parse_rows(csv_content))["name"] == "Zoë"

    def test_str_content(self):
        parser = CSVParser(delimiter=",")
        assert list(parser.parse_rows("name\nAda\n")) == [{"name": "Ada"}]

    def test_parse_rows_with_limit(self):
        parser = CSVParser()
        csv_content = b"first_name,last_name\nJohn,Doe\nJane,Smith\nBob,Johnson"
        assert len(list(parser.parse_rows(csv_content, limit=2))) == 2

    def test_get_row_count(self):
        parser = CSVParser()
        csv_content = b"first_name,last_name\nJohn,Doe\nJane,Smith\nBob,Johnson"
        assert parser.get_row_count(csv_content) == 3

    def test_large_file_spans_chunks(self):
        parser = CSVParser(delimiter=",")
        csv_content = "name\n" + "\n".join(f"person{i}" for i in range(2500))
        assert parser.get_row_count(csv_content) == 2500
        rows = list(parser.parse_rows(csv_content))
        assert rows[-1] == {"name": "person2499"}

    def test_empty_content(self):
        parser = CSVParser()
        assert parser.parse_headers(b"") == []
        assert list(parser.parse_rows(b"  ")) == []
        assert parser.get_row_count(b"") == 0


class TestParseCSV:
    def test_parse_csv(self):
        parsed = parse_csv(b"name;email\nAda;ada@example.com\nBob;bob@example.com\n")
        assert parsed.delimiter == ";"
        assert parsed.headers == ["name", "email"]
        assert parsed.row_count == 2

    def test_parse_csv_limit(self):
        parsed = parse_csv(b"name\nAda\nBob\nCy\n", limit=1)
        assert parsed.rows == [{"name": "Ada"}]

    def test_header_only(self):
        parsed = parse_csv(b"firstName,lastName\n")
        assert parsed.headers == ["firstName", "lastName"]
        assert parsed.rows == []

    def test_malformed_csv(self):
        with pytest.raises(ValueError, match="Could not parse CSV"):
            parse_csv(b"a,b\n1,2\n3,4,5,6\n")
