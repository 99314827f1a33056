# marketplace/models/_types.py
from sqlalchemy import Enum as SAEnum


def enum_column_type(enum_cls, length: int = 20) -> SAEnum:
    """String-backed enum type storing member values, portable across PostgreSQL and SQLite."""
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )
