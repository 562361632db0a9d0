"""
Database migrations for the analytics tables.

create_all() only creates missing tables; it never alters existing ones.
These steps bring older databases up to the current schema:

  - columns added after the first release
  - the unique keys that the upserts rely on (a database created before
    a key existed would otherwise accept duplicate rows from two racing
    webhook deliveries)

Every step is idempotent and checks the live schema first. Called from
get_engine() after create_all().
"""
import logging

from sqlalchemy import inspect, text

logger = logging.getLogger(__name__)

_COLUMNS = [
    # (table, column, type)
    ("health_daily", "sleep_efficiency", "REAL"),
    ("health_daily", "stress_level", "INTEGER"),
    ("metric_baselines", "min_14day", "REAL"),
    ("metric_baselines", "max_14day", "REAL"),
    ("metric_baselines", "min_30day", "REAL"),
    ("metric_baselines", "max_30day", "REAL"),
    ("metric_baselines", "sample_count_14day", "INTEGER DEFAULT 0"),
    ("proactive_insights", "data_context_json", "TEXT"),
]

_UNIQUE_KEYS = [
    # (table, index name, columns)
    ("health_daily", "uq_health_daily_user_date", ("user_id", "record_date")),
    ("metric_baselines", "uq_metric_baselines_user_metric", ("user_id", "metric_type")),
    (
        "detected_patterns",
        "uq_detected_patterns_key",
        ("user_id", "pattern_type", "metric_a", "metric_b", "time_lag_days"),
    ),
    (
        "proactive_insights",
        "uq_proactive_insights_user_metric_date",
        ("user_id", "metric_type", "metric_date"),
    ),
]


def run_migrations(engine) -> None:
    """Apply all pending schema migrations.

    Safe to call multiple times. Tables that do not exist yet are skipped;
    create_all() is responsible for them.

    Args:
        engine: SQLAlchemy engine (SQLModel create_engine result).
    """
    with engine.connect() as conn:
        for table, column, col_type in _COLUMNS:
            _add_column_if_missing(conn, table, column, col_type)
        for table, name, columns in _UNIQUE_KEYS:
            _add_unique_index_if_missing(conn, table, name, columns)
        conn.commit()


def _add_column_if_missing(conn, table: str, column: str, col_type: str) -> None:
    """Add a column to a table if it doesn't already exist.

    Args:
        conn: SQLAlchemy connection.
        table: Table name.
        column: Column name to add.
        col_type: SQL type string, e.g. "INTEGER", "REAL", "TEXT".
    """
    inspector = inspect(conn)
    if not inspector.has_table(table):
        return
    existing_columns = {c["name"] for c in inspector.get_columns(table)}
    if column not in existing_columns:
        logger.info("Adding column %s.%s", table, column)
        conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {col_type}"))


def _add_unique_index_if_missing(conn, table: str, name: str, columns) -> None:
    """Create a unique index over columns unless an equivalent key exists."""
    inspector = inspect(conn)
    if not inspector.has_table(table):
        return
    wanted = set(columns)
    for constraint in inspector.get_unique_constraints(table):
        if set(constraint["column_names"]) == wanted:
            return
    for index in inspector.get_indexes(table):
        if index.get("unique") and set(index["column_names"]) == wanted:
            return
    logger.info("Creating unique index %s on %s", name, table)
    conn.execute(
        text(f"CREATE UNIQUE INDEX IF NOT EXISTS {name} ON {table} ({', '.join(columns)})")
    )
