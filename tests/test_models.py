import pytest
from sqlalchemy import DateTime
from sqlmodel import SQLModel

from models import Complaint, utcnow

TIMESTAMP_COLUMNS = [
    ("users", "created_at"),
    ("warehouse_stock", "last_updated"),
    ("waste_listing", "created_at"),
    ("transaction_record", "transaction_date"),
    ("collection", "collected_date"),
    ("complaint", "created_at"),
]


@pytest.mark.parametrize("table, column", TIMESTAMP_COLUMNS)
def test_timestamps_are_naive_columns(table, column):
    column_type = SQLModel.metadata.tables[table].c[column].type

    assert type(column_type) is DateTime
    assert column_type.timezone is False


def test_naive_timestamp_round_trip(session, world):
    moment = utcnow()
    complaint = Complaint(
        citizen_id=world.citizen_id, complaint_type="Noise", description="Truck at 5am", created_at=moment
    )
    session.add(complaint)
    session.commit()

    session.expire_all()
    stored = session.get(Complaint, complaint.complaint_id).created_at
    assert stored == moment
    assert stored.tzinfo is None
