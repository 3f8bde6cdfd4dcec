"""Custom SQLAlchemy column types."""
from decimal import Decimal
from sqlalchemy import Numeric, String
from sqlalchemy.types import TypeDecorator


class DecimalType(TypeDecorator):
    """Exact decimal column.

    Uses ``Numeric(38, 18)`` where the database has native decimals. SQLite
    only has binary floats, so there the value is stored as its decimal
    string and parsed back into a ``Decimal`` unchanged.
    """
    impl = Numeric
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(64))
        return dialect.type_descriptor(Numeric(38, 18, asdecimal=True))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if not isinstance(value, Decimal):
            value = Decimal(str(value))
        if dialect.name == "sqlite":
            return format(value, "f")
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, Decimal):
            return value
        return Decimal(str(value))
