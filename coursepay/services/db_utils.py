"""Database helpers shared by the services."""

from sqlalchemy.exc import IntegrityError

from coursepay.extensions import db

ON_CONFLICT_DIALECTS = ("postgresql", "sqlite")


def _dialect_name():
    return db.session.get_bind().dialect.name


def insert_if_absent(model, values, conflict_columns):
    """Atomically insert one row unless it would violate a unique key.

    PostgreSQL and SQLite use INSERT ... ON CONFLICT DO NOTHING. Other
    dialects insert inside a SAVEPOINT and treat IntegrityError as the
    conflict. Returns True if the row was written, False if it existed.
    """
    dialect = _dialect_name()

    if dialect in ON_CONFLICT_DIALECTS:
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        else:
            from sqlalchemy.dialects.sqlite import insert

        stmt = (
            insert(model.__table__)
            .values(**values)
            .on_conflict_do_nothing(index_elements=list(conflict_columns))
        )
        return db.session.execute(stmt).rowcount == 1

    try:
        with db.session.begin_nested():
            db.session.add(model(**values))
            db.session.flush()
    except IntegrityError:
        return False
    return True
