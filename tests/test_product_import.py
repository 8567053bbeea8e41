import threading
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from proposalcrm.core.errors import EmptyFileError, PersistenceError
from proposalcrm.crud.crud_product import product_crud
from proposalcrm.db.base import Base
from proposalcrm.db.session import SessionLocal, engine
from proposalcrm.schemas.product import ProductRecord
from proposalcrm.services.product_import import delete_all_products, import_products


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def catalog(count: int, price: str = "10") -> str:
    rows = "".join(f"P{i:03d},Part {i},Desc {i},Parts,{price},4\n" for i in range(count))
    return "code,name,description,category,listPrice,partnerPrice\n" + rows


def test_import_creates_then_updates(db):
    first = import_products(db, catalog(3), batch_size=2)
    assert first.status == "completed"
    assert (first.created, first.updated, first.batches_committed) == (3, 0, 2)
    assert product_crud.count(db) == 3

    second = import_products(db, catalog(3, price="12.5"), batch_size=2)
    assert (second.created, second.updated) == (0, 3)
    assert product_crud.get_by_code(db, "P001").list_price == Decimal("12.50")


def test_progress_is_reported_per_batch(db):
    seen = []
    report = import_products(db, catalog(5), batch_size=2, progress=seen.append)

    assert [p.batch_index for p in seen] == [0, 1, 2]
    assert [p.committed_rows for p in seen] == [2, 4, 5]
    assert report.committed_rows == 5


def test_duplicate_codes_in_batch_keep_last_row(db):
    text = "code,name,listPrice\nA1,First,1\nA1,Second,2\n"
    report = import_products(db, text)

    assert report.created == 1
    product = product_crud.get_by_code(db, "A1")
    assert product.name == "Second"
    assert product.list_price == Decimal("2.00")


def test_cancel_between_batches(db):
    cancel = threading.Event()

    def on_progress(progress):
        cancel.set()

    report = import_products(db, catalog(6), batch_size=2, progress=on_progress, cancel=cancel)

    assert report.status == "cancelled"
    assert report.batches_committed == 1
    assert product_crud.count(db) == 2


def test_failed_batch_keeps_earlier_batches_and_can_resume(db, monkeypatch):
    real_upsert = product_crud.upsert_batch
    calls = []

    def flaky_upsert(session, records):
        calls.append(len(records))
        if len(calls) == 2:
            raise PersistenceError("disk full")
        return real_upsert(session, records)

    monkeypatch.setattr(product_crud, "upsert_batch", flaky_upsert)
    report = import_products(db, catalog(6), batch_size=2)

    assert report.status == "failed"
    assert report.failed_batch == 1
    assert report.committed_rows == 2
    assert report.error == "disk full"
    assert product_crud.count(db) == 2

    monkeypatch.setattr(product_crud, "upsert_batch", real_upsert)
    resumed = import_products(db, catalog(6), batch_size=2, start_batch=report.failed_batch)

    assert resumed.status == "completed"
    assert resumed.batches_committed == 2
    assert product_crud.count(db) == 6


def test_row_errors_mark_import_partial(db):
    text = "code,name,listPrice\nA1,Bolt,1\n,Missing,2\n"
    report = import_products(db, text)

    assert report.status == "partial"
    assert report.skipped == 1
    assert report.errors[0].code == "missing_code"
    assert product_crud.count(db) == 1


def test_preamble_rows_count_as_skipped(db):
    report = import_products(db, "Catalog export\ncode,name,listPrice\nA1,Bolt,1\n")

    assert report.status == "partial"
    assert report.skipped == 1
    assert report.created == 1
    assert [e.code for e in report.errors] == ["preamble"]


def test_empty_file_writes_nothing(db):
    with pytest.raises(EmptyFileError):
        import_products(db, "")
    assert product_crud.count(db) == 0


def test_upsert_batch_rolls_back_on_database_error(db):
    records = [ProductRecord(code="A1", name="Bolt"), ProductRecord(code="A2", name="Nut")]
    product_crud.upsert_batch(db, records)

    broken = [ProductRecord(code="B1", name="Washer")]

    def failing_commit():
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    db.commit = failing_commit
    with pytest.raises(PersistenceError):
        product_crud.upsert_batch(db, broken)

    fresh = SessionLocal()
    try:
        assert product_crud.count(fresh) == 2
        assert product_crud.get_by_code(fresh, "B1") is None
    finally:
        fresh.close()


def test_delete_all_products_in_batches(db):
    import_products(db, catalog(5))
    seen = []

    report = delete_all_products(db, batch_size=2, progress=seen.append)

    assert report.status == "completed"
    assert (report.deleted, report.batches) == (5, 3)
    assert [p.committed_rows for p in seen] == [2, 4, 5]
    assert product_crud.count(db) == 0


def test_delete_all_products_can_be_cancelled(db):
    import_products(db, catalog(5))
    cancel = threading.Event()

    report = delete_all_products(db, batch_size=2, progress=lambda p: cancel.set(), cancel=cancel)

    assert report.status == "cancelled"
    assert report.deleted == 2
    assert product_crud.count(db) == 3
