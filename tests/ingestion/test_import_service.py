"""
Tests for SalesImportService.

Spreadsheets are built in memory with openpyxl and imported into an
in-memory SQLite database; duplicate detection runs through the real
partial unique index.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

from vending_config.schema import IngestionSettings
from vending_ingestion.adapters.archive_sink import DirectoryArchiveSink
from vending_ingestion.domain.types import MachineRef
from vending_ingestion.services.archive_service import FileArchiver
from vending_ingestion.services.import_service import SalesImportService, new_batch_id
from vending_kernel.db.base import Base
from vending_kernel.domain.timezone import business_timezone
from vending_kernel.exceptions import SpreadsheetStructureError
from vending_kernel.models import ImportFile, SalesOrder

from factories import STANDARD_HEADER, standard_row, utc


class RecordingArchiver:
    def __init__(self):
        self.calls = []

    def submit(self, data, batch_id, file_name, imported):
        self.calls.append((data, batch_id, file_name, imported))
        return None


class FailingArchiver:
    def submit(self, data, batch_id, file_name, imported):
        raise RuntimeError("archive store is down")


class StaticMachineDirectory:
    def __init__(self, refs):
        self.refs = refs

    def lookup_all(self):
        return list(self.refs)


@pytest.fixture
def service(session) -> SalesImportService:
    return SalesImportService(session)


def _count_orders(session, **filters) -> int:
    query = select(func.count(SalesOrder.id))
    for column, value in filters.items():
        query = query.where(getattr(SalesOrder, column) == value)
    return session.scalar(query)


class TestImportSpreadsheet:
    def test_imports_rows(self, service, session, make_xlsx, create_machine):
        machine = create_machine("A01")
        data = make_xlsx(
            STANDARD_HEADER,
            [
                standard_row("1001", "A01", 15000, "02.01.2025 15:00"),
                standard_row("1002", "A01", "9 000 сум", "02.01.2025 16:00", payment_resource="Карта"),
            ],
        )

        summary = service.import_spreadsheet(data, "sales.xlsx")

        assert summary.imported == 2
        assert summary.skipped == 0
        assert summary.duplicates == 0
        assert summary.errors == ()
        assert summary.machines_found == 1
        assert summary.machines_not_found == ()

        orders = session.scalars(select(SalesOrder).order_by(SalesOrder.order_number)).all()
        assert [o.order_number for o in orders] == ["1001", "1002"]
        assert orders[0].payment_method == "cash"
        assert orders[0].price == Decimal("15000.00")
        assert orders[0].order_date == utc(2025, 1, 2, 10, 0)
        assert orders[0].machine_id == machine.id
        assert orders[1].payment_method == "card"
        assert orders[1].price == Decimal("9000.00")
        assert {o.import_batch_id for o in orders} == {summary.batch_id}

    def test_batch_id_is_short_hex(self, service, make_xlsx):
        summary = service.import_spreadsheet(make_xlsx(STANDARD_HEADER, []))

        assert len(summary.batch_id) == 8
        int(summary.batch_id, 16)

    def test_reimport_counts_duplicates(self, service, session, make_xlsx):
        data = make_xlsx(
            STANDARD_HEADER,
            [
                standard_row("1001", "A01", 15000, "02.01.2025 15:00"),
                standard_row("1002", "A01", 15000, "02.01.2025 15:05"),
            ],
        )

        first = service.import_spreadsheet(data)
        second = service.import_spreadsheet(data)

        assert (first.imported, first.duplicates) == (2, 0)
        assert (second.imported, second.duplicates) == (0, 2)
        assert _count_orders(session) == 2
        assert first.batch_id != second.batch_id

    def test_business_timezone_applied(self, session, make_xlsx):
        service = SalesImportService(session, tz=business_timezone(3))
        data = make_xlsx(STANDARD_HEADER, [standard_row("1001", "A01", 100, "02.01.2025 15:00")])

        service.import_spreadsheet(data)

        assert session.scalars(select(SalesOrder.order_date)).one() == utc(2025, 1, 2, 12, 0)

    def test_oversized_price_stored_as_zero(self, service, session, make_xlsx):
        data = make_xlsx(
            STANDARD_HEADER,
            [
                standard_row("1001", "A01", "99999999999999999", "02.01.2025 15:00"),
                standard_row("1002", "A01", "1" * 30, "02.01.2025 15:05"),
            ],
        )

        summary = service.import_spreadsheet(data)

        assert summary.imported == 2
        assert summary.errors == ()
        assert set(session.scalars(select(SalesOrder.price))) == {Decimal("0.00")}

    def test_duplicate_within_one_file(self, service, make_xlsx):
        row = standard_row("1001", "A01", 15000, "02.01.2025 15:00")

        summary = service.import_spreadsheet(make_xlsx(STANDARD_HEADER, [row, row]))

        assert summary.imported == 1
        assert summary.duplicates == 1

    def test_same_order_number_on_other_machine_is_not_duplicate(self, service, make_xlsx):
        data = make_xlsx(
            STANDARD_HEADER,
            [
                standard_row("1001", "A01", 15000, "02.01.2025 15:00"),
                standard_row("1001", "B02", 15000, "02.01.2025 15:00"),
            ],
        )

        assert service.import_spreadsheet(data).imported == 2

    def test_rows_without_order_number_never_deduplicated(self, service, session, make_xlsx):
        row = standard_row(None, "A01", 15000, "02.01.2025 15:00")
        data = make_xlsx(STANDARD_HEADER, [row, row])

        first = service.import_spreadsheet(data)
        second = service.import_spreadsheet(data)

        assert first.imported == 2
        assert second.imported == 2
        assert second.duplicates == 0
        assert _count_orders(session) == 4

    def test_chunked_insert(self, session, make_xlsx, captured_logs):
        service = SalesImportService(session, settings=IngestionSettings(chunk_size=2))
        rows = [standard_row(str(n), "A01", 100, "02.01.2025 15:00") for n in range(5)]
        rows.append(standard_row("0", "A01", 100, "02.01.2025 15:00"))

        summary = service.import_spreadsheet(make_xlsx(STANDARD_HEADER, rows))

        assert summary.imported == 5
        assert summary.duplicates == 1
        chunks = [r for r in captured_logs() if r["message"] == "chunk_inserted"]
        assert [c["size"] for c in chunks] == [2, 2, 2]
        assert sum(c["inserted"] for c in chunks) == 5

    def test_skipped_rows_counted(self, service, make_xlsx):
        data = make_xlsx(
            STANDARD_HEADER,
            [
                standard_row("1", "A01", 100, "02.01.2025 15:00"),
                standard_row("2", "A01", 100, "02.01.2025 15:00", payment_resource="VIP"),
                standard_row("3", None, 100, "02.01.2025 15:00"),
            ],
        )

        summary = service.import_spreadsheet(data)

        assert summary.imported == 1
        assert summary.skipped == 2

    def test_machines_found_and_not_found(self, service, make_xlsx, create_machine):
        create_machine("A01")
        data = make_xlsx(
            STANDARD_HEADER,
            [
                standard_row("1", "a01", 100, "02.01.2025 15:00"),
                standard_row("2", "A01", 100, "02.01.2025 15:00"),
                standard_row("3", "Z99", 100, "02.01.2025 15:00"),
                standard_row("4", "z99", 100, "02.01.2025 15:00"),
                standard_row("5", "B02", 100, "02.01.2025 15:00"),
            ],
        )

        summary = service.import_spreadsheet(data)

        assert summary.imported == 5
        assert summary.machines_found == 1
        assert summary.machines_not_found == ("B02", "Z99")

    def test_injected_machine_directory(self, session, make_xlsx):
        machine_id = uuid4()
        service = SalesImportService(
            session, machine_directory=StaticMachineDirectory([MachineRef(" K7 ", machine_id)])
        )

        service.import_spreadsheet(
            make_xlsx(STANDARD_HEADER, [standard_row("1", "k7", 100, "02.01.2025 15:00")])
        )

        assert session.scalar(select(SalesOrder.machine_id)) == machine_id

    def test_row_errors_truncated_for_caller(self, service, make_xlsx, captured_logs):
        rows = [standard_row(str(n), "A01", 100, "not a date") for n in range(55)]
        rows.append(standard_row("ok", "A01", 100, "02.01.2025 15:00"))

        summary = service.import_spreadsheet(make_xlsx(STANDARD_HEADER, rows))

        assert summary.imported == 1
        assert len(summary.errors) == 51
        assert summary.errors[0].startswith("Row 2:")
        assert summary.errors[-1] == "... and 5 more errors"

        logs = captured_logs()
        assert len([r for r in logs if r["message"] == "row_parse_error"]) == 10
        truncated = [r for r in logs if r["message"] == "row_parse_errors_truncated"]
        assert truncated[0]["remaining"] == 45

    def test_all_rows_skipped_warning(self, service, make_xlsx, captured_logs):
        rows = [
            standard_row(str(n), "A01", 100, "02.01.2025 15:00", payment_resource="Отправка")
            for n in range(5)
        ]

        summary = service.import_spreadsheet(make_xlsx(STANDARD_HEADER, rows))

        assert summary.imported == 0
        assert summary.skipped == 5
        logs = captured_logs()
        warning = next(r for r in logs if r["message"] == "all_rows_skipped")
        assert warning["level"] == "WARNING"
        assert warning["skipped"] == 5
        assert warning["batch_id"] == summary.batch_id
        # Skipped rows are logged in detail only up to the per-reason limit
        assert len([r for r in logs if r["message"] == "row_skipped"]) == 3

    def test_completion_logged_with_context(self, service, make_xlsx, captured_logs):
        summary = service.import_spreadsheet(
            make_xlsx(STANDARD_HEADER, [standard_row("1", "A01", 100, "02.01.2025 15:00")]),
            "january.xlsx",
        )

        logs = captured_logs()
        started = next(r for r in logs if r["message"] == "import_started")
        completed = next(r for r in logs if r["message"] == "import_completed")
        assert started["file_name"] == "january.xlsx"
        assert completed["imported"] == 1
        assert completed["producer"] == "ingestion"
        assert completed["batch_id"] == summary.batch_id

    def test_header_fallback_still_imports(self, service, make_xlsx):
        header = ["col%d" % n for n in range(1, 14)]
        data = make_xlsx(header, [standard_row("1", "A01", 100, "02.01.2025 15:00")])

        assert service.import_spreadsheet(data).imported == 1

    def test_not_a_workbook(self, service, session):
        with pytest.raises(SpreadsheetStructureError):
            service.import_spreadsheet(b"PK\x03\x04 broken", "broken.xlsx")

        assert _count_orders(session) == 0


class TestArchiving:
    def test_archiver_receives_file(self, session, make_xlsx):
        archiver = RecordingArchiver()
        service = SalesImportService(session, archiver=archiver)
        data = make_xlsx(STANDARD_HEADER, [standard_row("1", "A01", 100, "02.01.2025 15:00")])

        summary = service.import_spreadsheet(data, "sales.xlsx")
        assert archiver.calls == []

        session.commit()

        assert archiver.calls == [(data, summary.batch_id, "sales.xlsx", 1)]

    def test_default_file_name(self, session, make_xlsx):
        archiver = RecordingArchiver()
        service = SalesImportService(session, archiver=archiver)

        summary = service.import_spreadsheet(make_xlsx(STANDARD_HEADER, []))
        session.commit()

        assert archiver.calls[0][2] == f"sales_{summary.batch_id}.xlsx"

    def test_archiver_failure_does_not_fail_import(self, session, make_xlsx, captured_logs):
        service = SalesImportService(session, archiver=FailingArchiver())
        data = make_xlsx(STANDARD_HEADER, [standard_row("1", "A01", 100, "02.01.2025 15:00")])

        summary = service.import_spreadsheet(data)
        session.commit()

        assert summary.imported == 1
        failure = next(r for r in captured_logs() if r["message"] == "archive_failed")
        assert failure["exc_message"] == "archive store is down"

    def test_rolled_back_import_not_archived(self, session, make_xlsx):
        archiver = RecordingArchiver()
        service = SalesImportService(session, archiver=archiver)
        data = make_xlsx(STANDARD_HEADER, [standard_row("1", "A01", 100, "02.01.2025 15:00")])

        service.import_spreadsheet(data)
        session.rollback()
        session.commit()

        assert archiver.calls == []

    def test_archived_once_per_import(self, session, make_xlsx):
        archiver = RecordingArchiver()
        service = SalesImportService(session, archiver=archiver)

        first = service.import_spreadsheet(make_xlsx(STANDARD_HEADER, []), "one.xlsx")
        session.commit()
        session.commit()
        second = service.import_spreadsheet(make_xlsx(STANDARD_HEADER, []), "two.xlsx")
        session.commit()

        assert [(c[1], c[2]) for c in archiver.calls] == [
            (first.batch_id, "one.xlsx"),
            (second.batch_id, "two.xlsx"),
        ]

    def test_inline_archive_on_file_database(self, tmp_path, make_xlsx):
        engine = create_engine(f"sqlite:///{tmp_path / 'sales.db'}")
        Base.metadata.create_all(engine)
        factory = sessionmaker(bind=engine, expire_on_commit=False)
        archiver = FileArchiver(DirectoryArchiveSink(tmp_path / "archive"), factory)
        data = make_xlsx(STANDARD_HEADER, [standard_row("1", "A01", 100, "02.01.2025 15:00")])

        session = factory()
        try:
            summary = SalesImportService(session, archiver=archiver).import_spreadsheet(data, "sales.xlsx")
            session.commit()
        finally:
            session.close()

        with factory() as check:
            stored = check.scalars(select(ImportFile)).one()
            assert stored.batch_id == summary.batch_id
            assert check.scalar(select(func.count(SalesOrder.id))) == 1
        engine.dispose()


class TestBatches:
    def test_delete_batch(self, service, session, make_xlsx):
        first = service.import_spreadsheet(
            make_xlsx(
                STANDARD_HEADER,
                [
                    standard_row("1", "A01", 100, "02.01.2025 15:00"),
                    standard_row("2", "A01", 100, "02.01.2025 15:00"),
                ],
            )
        )
        second = service.import_spreadsheet(
            make_xlsx(STANDARD_HEADER, [standard_row("3", "A01", 100, "02.01.2025 15:00")])
        )

        result = service.delete_batch(first.batch_id)

        assert result.deleted_count == 2
        assert _count_orders(session, import_batch_id=first.batch_id) == 0
        assert _count_orders(session, import_batch_id=second.batch_id) == 1

    def test_delete_unknown_batch(self, service):
        assert service.delete_batch("ffffffff").deleted_count == 0

    def test_deleted_rows_can_be_reimported(self, service, make_xlsx):
        data = make_xlsx(STANDARD_HEADER, [standard_row("1", "A01", 100, "02.01.2025 15:00")])
        first = service.import_spreadsheet(data)

        service.delete_batch(first.batch_id)

        assert service.import_spreadsheet(data).imported == 1

    def test_list_import_batches(self, service, session, create_sale):
        older = [create_sale("A01", "10", utc(2025, 1, 1), batch_id="aaaa0001") for _ in range(2)]
        newer = create_sale("A01", "10", utc(2025, 1, 2), batch_id="bbbb0002")
        for order in older:
            order.imported_at = utc(2025, 1, 5, 8, 0)
        newer.imported_at = utc(2025, 1, 6, 8, 0)
        session.flush()

        batches = service.list_import_batches()

        assert [(b.batch_id, b.orders_count) for b in batches] == [
            ("bbbb0002", 1),
            ("aaaa0001", 2),
        ]
        assert batches[0].imported_at == utc(2025, 1, 6, 8, 0)

    def test_get_import_file(self, service, session):
        session.add(
            ImportFile(
                batch_id="cafe0001",
                original_name="sales.xlsx",
                file_ref="archive/cafe0001_sales.xlsx",
                message_ref="cafe0001_sales.xlsx.txt",
                file_size=2048,
            )
        )
        session.flush()

        info = service.get_import_file("cafe0001")

        assert info.original_name == "sales.xlsx"
        assert info.file_ref == "archive/cafe0001_sales.xlsx"
        assert info.file_size == 2048
        assert info.created_at is not None
        assert service.get_import_file("missing0") is None


def test_new_batch_ids_differ():
    assert len({new_batch_id() for _ in range(50)}) == 50
