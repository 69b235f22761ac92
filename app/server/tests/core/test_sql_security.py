import pytest
import sqlite3
from core.sql_security import (
    SQLSecurityError,
    execute_query_safely,
    quote_identifier,
    validate_identifier
)


@pytest.fixture
def test_db():
    """Create an in-memory test database"""
    conn = sqlite3.connect(':memory:')
    conn.execute('CREATE TABLE users (id INTEGER, name TEXT)')
    conn.execute("INSERT INTO users VALUES (1, 'Alice'), (2, 'Bob')")
    yield conn
    conn.close()


class TestValidateIdentifier:

    @pytest.mark.parametrize("name", ["users", "_private", "meter_reading2"])
    def test_valid(self, name):
        assert validate_identifier(name) == name

    @pytest.mark.parametrize("name,message", [
        ("", "Empty"),
        ("users; DROP TABLE users", "Invalid"),
        ("1users", "Invalid"),
        ("select", "reserved keyword"),
        ("a" * 129, "too long"),
    ])
    def test_invalid(self, name, message):
        with pytest.raises(SQLSecurityError) as exc_info:
            validate_identifier(name, "table")

        assert message in str(exc_info.value)


class TestQuoteIdentifier:

    def test_quotes(self):
        assert quote_identifier("item.id") == '"item.id"'
        assert quote_identifier('say "x"') == '"say ""x"""'


class TestExecuteQuerySafely:

    def test_identifier_params(self, test_db):
        cursor = execute_query_safely(
            test_db,
            "SELECT name FROM {table} WHERE id = ?",
            params=(2,),
            identifier_params={'table': 'users'}
        )

        assert cursor.fetchall() == [('Bob',)]

    def test_rejects_injection(self, test_db):
        with pytest.raises(SQLSecurityError):
            execute_query_safely(
                test_db,
                "SELECT * FROM {table}",
                identifier_params={'table': 'users; DROP TABLE users'}
            )

        assert test_db.execute("SELECT COUNT(*) FROM users").fetchone()[0] == 2
