"""
Read access to the synced tables of a project schema.

Each project owns the schema project_<uuid_underscored>. Table names come
from the browser, so they are checked against a plain identifier pattern
and always quoted before being placed in SQL.

When a table or the whole schema does not exist yet (no sync has run),
load_table answers with demo rows flagged ``isDemo`` so the data views
have something to show.
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, List, Dict, Any

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session

from src.models.project import Project

logger = logging.getLogger(__name__)

SAMPLE_DATA_SCRIPT = Path(__file__).resolve().parents[2] / "sql" / "create_project_sample_data.sql"

DEFAULT_ROW_LIMIT = 100

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")

# Postgres undefined_table and invalid_schema_name
MISSING_RELATION_CODES = {"42P01", "3F000"}

NUMERIC_TYPES = {"integer", "numeric", "decimal", "real", "double precision", "bigint", "smallint"}
TEXT_TYPES = {"character varying", "varchar", "text", "char", "character"}
DATE_TYPES = {"timestamp", "date", "time"}

KNOWN_TABLE_COLUMNS: Dict[str, List[str]] = {
    "orders": [
        "id", "order_id", "date_created", "status", "customer_email",
        "customer_name", "total", "items_count", "payment_method", "synced_at",
    ],
    "products": [
        "id", "product_id", "name", "sku", "price", "regular_price",
        "sale_price", "stock_quantity", "stock_status", "description", "synced_at",
    ],
    "customers": [
        "id", "customer_id", "email", "first_name", "last_name",
        "role", "date_created", "orders_count", "total_spent", "synced_at",
    ],
}


class ProjectDataError(Exception):
    """Base exception for project data errors."""
    status_code = 500


class InvalidTableNameError(ProjectDataError):
    status_code = 400

    def __init__(self, table_name: str):
        super().__init__(f"Invalid table name: {table_name}")
        self.table_name = table_name


class TableNotFoundError(ProjectDataError):
    status_code = 404

    def __init__(self, table_name: str, schema: str):
        super().__init__(f"Table {table_name} does not exist in the project schema")
        self.table_name = table_name
        self.schema = schema


def validate_table_name(table_name: str) -> str:
    if not table_name or not IDENTIFIER_PATTERN.match(table_name):
        raise InvalidTableNameError(table_name)
    return table_name


def classify_column(data_type: str) -> Dict[str, bool]:
    data_type = (data_type or "").lower()
    return {
        "isNumeric": data_type in NUMERIC_TYPES,
        "isText": data_type in TEXT_TYPES,
        "isDate": data_type in DATE_TYPES or "timestamp" in data_type,
        "isBoolean": data_type == "boolean",
    }


def is_missing_relation(error: DBAPIError) -> bool:
    """True when the database reports a missing table or schema."""
    pgcode = getattr(error.orig, "pgcode", None)
    if pgcode:
        return pgcode in MISSING_RELATION_CODES
    message = str(error.orig).lower()
    return "does not exist" in message or "no such table" in message


def demo_rows(table_name: str, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """Two example rows for each known table."""
    now = now or datetime.now(timezone.utc)
    yesterday = now - timedelta(days=1)

    if table_name == "orders":
        return [
            {"id": 1, "order_id": 1001, "date_created": now.isoformat(), "status": "completed",
             "customer_email": "ana@example.com", "customer_name": "Ana Lima", "total": 125.50,
             "items_count": 3, "payment_method": "pix"},
            {"id": 2, "order_id": 1002, "date_created": yesterday.isoformat(), "status": "processing",
             "customer_email": "bruno@example.com", "customer_name": "Bruno Costa", "total": 299.99,
             "items_count": 1, "payment_method": "credit_card"},
        ]
    if table_name == "products":
        return [
            {"id": 1, "product_id": 101, "name": "Smartphone XYZ", "sku": "PHN-001", "price": 1299.99,
             "regular_price": 1499.99, "sale_price": 1299.99, "stock_quantity": 15,
             "stock_status": "instock", "description": "Latest generation smartphone"},
            {"id": 2, "product_id": 102, "name": "Notebook Ultra", "sku": "LPT-001", "price": 4599.90,
             "regular_price": 4899.90, "sale_price": 4599.90, "stock_quantity": 8,
             "stock_status": "instock", "description": "High performance notebook"},
        ]
    if table_name == "customers":
        return [
            {"id": 1, "customer_id": 201, "email": "ana@example.com", "first_name": "Ana",
             "last_name": "Lima", "role": "customer", "date_created": now.isoformat(),
             "orders_count": 5, "total_spent": 1500.75},
            {"id": 2, "customer_id": 202, "email": "bruno@example.com", "first_name": "Bruno",
             "last_name": "Costa", "role": "customer", "date_created": now.isoformat(),
             "orders_count": 2, "total_spent": 599.98},
        ]
    return []


def split_sql_statements(script: str) -> List[str]:
    """Split a script on ';', dropping comment lines and empty statements."""
    lines = [line for line in script.splitlines() if not line.strip().startswith("--")]
    return [s.strip() for s in "\n".join(lines).split(";") if s.strip()]


class ProjectDataService:
    """Table views over one project's schema."""

    def __init__(self, db_session: Session, project: Project):
        self.db = db_session
        self.project = project

    @property
    def schema(self) -> str:
        return self.project.schema_name

    def get_columns(self, table_name: str) -> List[Dict[str, Any]]:
        """
        Describe the columns of a table from information_schema.

        Raises:
            InvalidTableNameError: If table_name is not a plain identifier
            TableNotFoundError: If the table has no columns in the project schema
        """
        validate_table_name(table_name)

        query = text("""
            SELECT
                column_name,
                data_type,
                character_maximum_length,
                is_nullable,
                column_default,
                ordinal_position
            FROM information_schema.columns
            WHERE table_schema = :schema
              AND table_name = :table_name
            ORDER BY ordinal_position
        """)
        rows = self.db.execute(
            query, {"schema": self.schema, "table_name": table_name}
        ).mappings().all()

        if not rows:
            raise TableNotFoundError(table_name, self.schema)

        return [
            {
                "name": row["column_name"],
                "type": row["data_type"],
                "maxLength": row["character_maximum_length"],
                "isNullable": row["is_nullable"] == "YES",
                "defaultValue": row["column_default"],
                "position": row["ordinal_position"],
                **classify_column(row["data_type"]),
            }
            for row in rows
        ]

    def load_table(self, table_name: str, limit: int = DEFAULT_ROW_LIMIT) -> Dict[str, Any]:
        """
        Load up to ``limit`` rows of a table.

        Raises:
            InvalidTableNameError: If table_name is not a plain identifier
            ProjectDataError: On database errors other than a missing table
        """
        validate_table_name(table_name)
        query = text(f'SELECT * FROM "{self.schema}"."{table_name}" LIMIT :limit')

        try:
            result = self.db.execute(query, {"limit": limit})
            rows = [dict(row) for row in result.mappings().all()]
            columns = KNOWN_TABLE_COLUMNS.get(table_name) or list(result.keys())
        except DBAPIError as e:
            self.db.rollback()
            if is_missing_relation(e):
                logger.info(
                    "Table not synced yet, serving demo rows",
                    extra={"project_id": self.project.id, "table_name": table_name},
                )
                return {
                    "name": table_name,
                    "columns": KNOWN_TABLE_COLUMNS.get(table_name, []),
                    "rows": demo_rows(table_name),
                    "isDemo": True,
                }
            logger.error(
                "Failed to load table",
                extra={"project_id": self.project.id, "table_name": table_name, "error": str(e)},
            )
            raise ProjectDataError(f"Failed to load table {table_name}")

        return {"name": table_name, "columns": columns, "rows": rows}

    def load_known_tables(self, limit: int = DEFAULT_ROW_LIMIT) -> List[Dict[str, Any]]:
        """Load orders, products and customers; a failing table comes back empty."""
        tables = []
        for table_name in KNOWN_TABLE_COLUMNS:
            try:
                tables.append(self.load_table(table_name, limit))
            except ProjectDataError as e:
                logger.warning(
                    "Known table could not be loaded",
                    extra={"project_id": self.project.id, "table_name": table_name, "error": str(e)},
                )
                tables.append({"name": table_name, "columns": [], "rows": []})
        return tables

    def render_sample_script(self, script_path: Optional[Path] = None) -> str:
        """
        Read the sample data script with the project schema filled in.

        Raises:
            ProjectDataError: If the script cannot be read
        """
        path = Path(script_path or SAMPLE_DATA_SCRIPT)
        try:
            script = path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error("Sample data script unreadable", extra={"path": str(path), "error": str(e)})
            raise ProjectDataError("Could not read the sample data script")
        return script.replace("{schema}", self.schema)

    def setup_sample_data(self, script_path: Optional[Path] = None) -> Dict[str, Any]:
        """
        Create the sample tables and rows in the project schema.

        Statements run one by one; a failing statement is logged and
        rolled back and execution continues with the next one.
        """
        statements = split_sql_statements(self.render_sample_script(script_path))
        failed = 0

        for statement in statements:
            try:
                self.db.execute(text(statement))
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                failed += 1
                logger.warning(
                    "Sample data statement failed",
                    extra={
                        "project_id": self.project.id,
                        "statement": statement[:200],
                        "error": str(e),
                    },
                )

        logger.info(
            "Sample data created",
            extra={
                "project_id": self.project.id,
                "schema": self.schema,
                "statements": len(statements),
                "failed": failed,
            },
        )
        return {
            "message": "Sample data created",
            "schema": self.schema,
            "statements": len(statements),
            "failed": failed,
        }
