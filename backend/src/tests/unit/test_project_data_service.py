"""
Unit tests for project table views.

Tests cover:
- Table name validation
- Column metadata from information_schema
- Demo rows when a table or schema has not been synced yet
- Sample data script execution
"""

import pytest
from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError, ProgrammingError

from src.models.project import Project
from src.services.project_data_service import (
    DEFAULT_ROW_LIMIT,
    KNOWN_TABLE_COLUMNS,
    InvalidTableNameError,
    ProjectDataError,
    ProjectDataService,
    TableNotFoundError,
    classify_column,
    demo_rows,
    is_missing_relation,
    split_sql_statements,
    validate_table_name,
)

PROJECT_ID = "3f1c7a52-1b2c-4d5e-8f90-123456789abc"
SCHEMA = "project_3f1c7a52_1b2c_4d5e_8f90_123456789abc"


class _PgError(Exception):
    def __init__(self, message, pgcode):
        super().__init__(message)
        self.pgcode = pgcode


def _programming_error(pgcode, message="relation does not exist"):
    return ProgrammingError("SELECT", {}, _PgError(message, pgcode))


@pytest.fixture
def db():
    return MagicMock()


@pytest.fixture
def service(db):
    return ProjectDataService(db, Project(id=PROJECT_ID, name="Shop", user_id="user-a"))


class TestHelpers:

    @pytest.mark.parametrize("name", ["orders", "_staging", "woo_orders_2024"])
    def test_valid_table_names(self, name):
        assert validate_table_name(name) == name

    @pytest.mark.security
    @pytest.mark.parametrize("name", ["", "1orders", "orders; DROP TABLE x", 'orders"', "a" * 64, "public.orders"])
    def test_invalid_table_names(self, name):
        with pytest.raises(InvalidTableNameError):
            validate_table_name(name)

    def test_classify_column(self):
        assert classify_column("numeric")["isNumeric"] is True
        assert classify_column("character varying")["isText"] is True
        assert classify_column("timestamp with time zone")["isDate"] is True
        assert classify_column("boolean")["isBoolean"] is True
        assert not any(classify_column("jsonb").values())

    def test_missing_relation_by_pgcode(self):
        assert is_missing_relation(_programming_error("42P01")) is True
        assert is_missing_relation(_programming_error("3F000")) is True
        assert is_missing_relation(_programming_error("42501", "permission denied")) is False

    def test_missing_relation_by_message(self):
        error = OperationalError("SELECT", {}, Exception("no such table: orders"))
        assert is_missing_relation(error) is True

    def test_demo_rows(self):
        for table_name in KNOWN_TABLE_COLUMNS:
            rows = demo_rows(table_name)
            assert len(rows) == 2
            assert set(rows[0]) <= set(KNOWN_TABLE_COLUMNS[table_name])
        assert demo_rows("refunds") == []

    def test_split_statements_drops_comments(self):
        script = "-- header\nCREATE SCHEMA s;\n\n-- rows\nINSERT INTO s.t VALUES (1);\n"
        assert split_sql_statements(script) == ["CREATE SCHEMA s", "INSERT INTO s.t VALUES (1)"]


class TestGetColumns:

    def test_returns_described_columns(self, service, db):
        db.execute.return_value.mappings.return_value.all.return_value = [
            {
                "column_name": "total",
                "data_type": "numeric",
                "character_maximum_length": None,
                "is_nullable": "NO",
                "column_default": "0",
                "ordinal_position": 7,
            },
        ]

        columns = service.get_columns("orders")

        assert columns == [{
            "name": "total",
            "type": "numeric",
            "maxLength": None,
            "isNullable": False,
            "defaultValue": "0",
            "position": 7,
            "isNumeric": True,
            "isText": False,
            "isDate": False,
            "isBoolean": False,
        }]
        params = db.execute.call_args.args[1]
        assert params == {"schema": SCHEMA, "table_name": "orders"}

    def test_unknown_table(self, service, db):
        db.execute.return_value.mappings.return_value.all.return_value = []

        with pytest.raises(TableNotFoundError) as exc_info:
            service.get_columns("refunds")

        assert exc_info.value.status_code == 404

    @pytest.mark.security
    def test_invalid_name_never_reaches_database(self, service, db):
        with pytest.raises(InvalidTableNameError):
            service.get_columns("orders; DROP TABLE users")
        db.execute.assert_not_called()


class TestLoadTable:

    def test_rows_from_project_schema(self, service, db):
        result = db.execute.return_value
        result.mappings.return_value.all.return_value = [{"id": 1, "status": "completed"}]
        result.keys.return_value = ["id", "status"]

        table = service.load_table("woo_orders", limit=10)

        assert table == {"name": "woo_orders", "columns": ["id", "status"], "rows": [{"id": 1, "status": "completed"}]}
        statement, params = db.execute.call_args.args
        assert f'"{SCHEMA}"."woo_orders"' in str(statement)
        assert params == {"limit": 10}

    def test_known_table_uses_known_columns(self, service, db):
        db.execute.return_value.mappings.return_value.all.return_value = []

        table = service.load_table("orders")

        assert table["columns"] == KNOWN_TABLE_COLUMNS["orders"]
        assert db.execute.call_args.args[1] == {"limit": DEFAULT_ROW_LIMIT}

    def test_missing_table_serves_demo_rows(self, service, db):
        db.execute.side_effect = _programming_error("42P01")

        table = service.load_table("products")

        assert table["isDemo"] is True
        assert len(table["rows"]) == 2
        db.rollback.assert_called_once()

    def test_other_database_errors_raise(self, service, db):
        db.execute.side_effect = _programming_error("42501", "permission denied")

        with pytest.raises(ProjectDataError):
            service.load_table("orders")

    def test_known_tables_survive_failures(self, service, db):
        db.execute.side_effect = [
            _programming_error("3F000", "schema does not exist"),
            _programming_error("42501", "permission denied"),
            _programming_error("42P01"),
        ]

        tables = service.load_known_tables()

        assert [t["name"] for t in tables] == ["orders", "products", "customers"]
        assert tables[0]["isDemo"] is True
        assert tables[1] == {"name": "products", "columns": [], "rows": []}
        assert tables[2]["isDemo"] is True


class TestSampleData:

    def test_script_targets_project_schema(self, service):
        script = service.render_sample_script()

        assert f"CREATE SCHEMA IF NOT EXISTS {SCHEMA}" in script
        assert "{schema}" not in script

    def test_statements_run_one_by_one(self, service, db):
        expected = len(split_sql_statements(service.render_sample_script()))

        result = service.setup_sample_data()

        assert result == {
            "message": "Sample data created",
            "schema": SCHEMA,
            "statements": expected,
            "failed": 0,
        }
        assert db.execute.call_count == expected
        assert db.commit.call_count == expected

    def test_failed_statement_does_not_stop_execution(self, service, db, tmp_path):
        script = tmp_path / "sample.sql"
        script.write_text("CREATE SCHEMA {schema};\nCREATE TABLE {schema}.t (id int);\nINSERT INTO {schema}.t VALUES (1);\n")
        db.execute.side_effect = [None, _programming_error("42P07", "already exists"), None]

        result = service.setup_sample_data(script)

        assert result["statements"] == 3
        assert result["failed"] == 1
        db.rollback.assert_called_once()

    def test_missing_script(self, service, tmp_path):
        with pytest.raises(ProjectDataError):
            service.render_sample_script(tmp_path / "missing.sql")
