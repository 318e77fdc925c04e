import pytest
import pandas as pd
from sqlalchemy import create_engine, event, text
from sqlalchemy.pool import StaticPool

from chunkcopy.core.config import ENV_VARS
from chunkcopy.core.types import ColumnMetadata, MigrationConfig


SOURCE_COLUMNS = ['sfid', 'name', 'industry']
TARGET_COLUMNS = ['id__c', 'name__c', 'industry__c']


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Remove ChunkCopy settings inherited from the shell running the tests."""
    for env_var in ENV_VARS.values():
        monkeypatch.delenv(env_var, raising=False)


@pytest.fixture
def sqlite_engine():
    """In-memory SQLite engine with 'cache' and 'salesforce' attached as schemas.

    StaticPool keeps a single connection so every session sees the same databases.
    """
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={'check_same_thread': False},
    )

    @event.listens_for(engine, "connect")
    def attach_schemas(dbapi_connection, connection_record):
        dbapi_connection.execute("ATTACH DATABASE ':memory:' AS cache")
        dbapi_connection.execute("ATTACH DATABASE ':memory:' AS salesforce")

    yield engine
    engine.dispose()


def insert_accounts(engine, count, start=1):
    rows = [
        {'id': i, 'sfid': f"001{i:06d}", 'name': f"Account {i}", 'industry': 'Energy' if i % 2 else None}
        for i in range(start, start + count)
    ]
    if rows:
        with engine.begin() as conn:
            conn.execute(
                text("INSERT INTO cache.account (id, sfid, name, industry) VALUES (:id, :sfid, :name, :industry)"),
                rows
            )
    return rows


@pytest.fixture
def account_tables(sqlite_engine):
    """Empty source table cache.account and target table salesforce.account__c."""
    with sqlite_engine.begin() as conn:
        conn.execute(text(
            "CREATE TABLE cache.account ("
            "id INTEGER PRIMARY KEY, sfid TEXT, name TEXT, industry TEXT, __sync_state TEXT)"
        ))
        conn.execute(text(
            "CREATE TABLE salesforce.account__c ("
            "id INTEGER PRIMARY KEY AUTOINCREMENT, id__c TEXT UNIQUE, name__c TEXT, industry__c TEXT)"
        ))
    return sqlite_engine


@pytest.fixture
def migration_config():
    return MigrationConfig(
        database_url="sqlite://",
        source_table="account",
        target_table="account__c",
        source_schema="cache",
        target_schema="salesforce",
        bulk_limit=10,
        workers=2,
        monitor_interval=0.01,
    )


@pytest.fixture
def account_metadata():
    return [
        ColumnMetadata('sfid', 'character varying', 18),
        ColumnMetadata('name', 'character varying', 255),
        ColumnMetadata('industry', 'text', None),
    ]


@pytest.fixture
def sample_dataframe():
    """Batch of target rows with a missing value."""
    return pd.DataFrame({
        'id__c': ['001000001', '001000002', '001000003'],
        'name__c': ['Alice Corp', 'Bob Ltd', 'Charlie Inc'],
        'industry__c': ['Energy', None, 'Retail'],
    })
