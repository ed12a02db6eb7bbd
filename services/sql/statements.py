"""
Helpers for the hand-written SQL backend.

Statements are plain ``text()`` clauses in the dialect subset shared by
PostgreSQL and SQLite (``RETURNING``, ``ON CONFLICT``, window functions).
Decimal and timestamp parameters and result columns are typed explicitly so
both drivers hand back the same Python types the ORM backend produces.
"""
from sqlalchemy import DateTime, Numeric, bindparam, text

MONEY = Numeric(10, 2)


def sql(statement: str, binds: dict = None, **columns):
    """Build a ``text()`` clause with typed bind parameters and result columns."""
    clause = text(statement)
    if binds:
        clause = clause.bindparams(*(bindparam(name, type_=type_) for name, type_ in binds.items()))
    if columns:
        clause = clause.columns(**columns)
    return clause


ADD_STOCK = sql(
    """
    INSERT INTO warehouse_stock (warehouse_id, category_id, current_weight, last_updated)
    VALUES (:warehouse_id, :category_id, :weight, :now)
    ON CONFLICT (warehouse_id, category_id) DO UPDATE
       SET current_weight = warehouse_stock.current_weight + excluded.current_weight,
           last_updated = excluded.last_updated
    """,
    binds={"now": DateTime()},
)

ADD_INVENTORY = sql(
    """
    UPDATE warehouse
       SET current_inventory = current_inventory + :weight
     WHERE warehouse_id = :warehouse_id
    """
)
