"""Unit tests for ExportService, the streaming export orchestrator."""
from __future__ import annotations

import asyncio
import csv
import io
import os
import zipfile
from dataclasses import dataclass

import pytest

from sheetstream.application.export import (
    ArrayDataSource,
    CallableDataSource,
    EmptyDatasetError,
    ExportFormat,
    ExportOptions,
    ExportService,
    InvalidChunkSizeError,
    InvalidSheetSpecError,
    Sheet,
    SourceDescriptor,
    StreamingError,
    UnsupportedFormatError,
)
from sheetstream.config import ExportSettings
from sheetstream.testing.fakes import FakeClock, FakeMemoryProbe, InMemoryByteSink, RecordingExportEvents


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------
PEOPLE = [{"name": "Ann", "email": "a@x.com"}, {"name": "Bo", "email": "b@x.com"}]


def _service(tmp_path, events=None, memory=None, clock=None, **settings) -> ExportService:
    settings.setdefault("include_timestamp", False)
    return ExportService(
        ExportSettings(temp_dir=str(tmp_path), **settings),
        events=events or RecordingExportEvents(),
        memory=memory or FakeMemoryProbe(),
        clock=clock or FakeClock(),
    )


async def _body(stream) -> bytes:
    return b"".join([block async for block in stream])


def _rows(n: int) -> list[dict]:
    return [{"id": i, "name": f"user{i}"} for i in range(1, n + 1)]


@dataclass
class User:
    id: int
    name: str


# ---------------------------------------------------------------------------
# export_from_rows
# ---------------------------------------------------------------------------
class TestExportFromRows:
    def test_scenario_csv_output(self, tmp_path):
        async def _run():
            stream = await _service(tmp_path).export_from_rows(PEOPLE, ["Name", "Email"], "people")
            assert await _body(stream) == b"Name,Email\nAnn,a@x.com\nBo,b@x.com\n"
        asyncio.run(_run())

    def test_scenario_with_timestamped_filename(self, tmp_path):
        async def _run():
            service = _service(tmp_path, include_timestamp=True)
            stream = await service.export_from_rows(PEOPLE, ["Name", "Email"], "people")
            assert stream.filename == "people_2026-01-01_12-00-00.csv"
            assert await _body(stream) == b"Name,Email\nAnn,a@x.com\nBo,b@x.com\n"
        asyncio.run(_run())

    def test_empty_rows_raise_before_stream(self, tmp_path):
        events = RecordingExportEvents()

        async def _run():
            with pytest.raises(EmptyDatasetError):
                await _service(tmp_path, events).export_from_rows([], ["Name"], "people")
        asyncio.run(_run())
        assert events.events == []

    def test_response_metadata(self, tmp_path):
        async def _run():
            options = ExportOptions(headers={"X-Export": "yes", "Pragma": "no-cache"})
            stream = await _service(tmp_path).export_from_rows(PEOPLE, ["Name", "Email"], "My People", options)
            assert stream.filename == "my_people.csv"
            assert stream.media_type == "text/csv"
            assert stream.headers["Content-Type"] == "text/csv"
            assert stream.headers["Content-Disposition"] == 'attachment; filename="my_people.csv"'
            assert stream.headers["Content-Description"] == "File Transfer"
            assert stream.headers["X-Export"] == "yes"
            assert stream.headers["Pragma"] == "no-cache"
            await stream.aclose()
        asyncio.run(_run())

    def test_packaged_format(self, tmp_path):
        async def _run():
            stream = await _service(tmp_path).export_from_rows(
                PEOPLE, ["Name", "Email"], "people.csv", ExportOptions(format="packaged")
            )
            assert stream.filename == "people.xlsx"
            assert stream.media_type.endswith("spreadsheetml.sheet")
            data = await _body(stream)
            with zipfile.ZipFile(io.BytesIO(data)) as archive:
                assert "xl/worksheets/sheet1.xml" in archive.namelist()
                assert 'name="Sheet1"' in archive.read("xl/workbook.xml").decode()
                assert "<t>a@x.com</t>" in archive.read("xl/worksheets/sheet1.xml").decode()
            assert os.listdir(tmp_path) == []
        asyncio.run(_run())


# ---------------------------------------------------------------------------
# export_from_source
# ---------------------------------------------------------------------------
class TestExportFromSource:
    def test_unsupported_format(self, tmp_path):
        with pytest.raises(UnsupportedFormatError):
            ExportOptions(format="pdf")

    def test_format_parsing(self):
        assert ExportOptions(format="CSV").export_format is ExportFormat.CSV
        assert ExportOptions(format="xlsx").export_format is ExportFormat.XLSX
        assert ExportOptions(format="Packaged").export_format is ExportFormat.XLSX

    def test_invalid_chunk_size(self):
        with pytest.raises(InvalidChunkSizeError):
            ExportOptions(chunk_size=0)

    def test_chunks_of_1000_over_2500_rows(self, tmp_path):
        events = RecordingExportEvents()

        async def _run():
            source = ArrayDataSource(_rows(2500), ["ID", "Name"])
            stream = await _service(tmp_path, events).export_from_source(source, "big", ExportOptions(chunk_size=1000))
            body = await _body(stream)
            assert body.count(b"\n") == 2501
            assert stream.job.records_processed == 2500
            assert stream.job.chunks_processed == 3
        asyncio.run(_run())

        assert [e.data["records_in_chunk"] for e in events.named("chunk_processed")] == [1000, 1000, 500]
        completed = events.named("export_completed")
        assert len(completed) == 1
        assert completed[0].data["actual_count"] == 2500
        assert completed[0].data["chunks_processed"] == 3

    def test_lifecycle_events(self, tmp_path):
        events = RecordingExportEvents()

        async def _run():
            source = ArrayDataSource(_rows(3), ["ID", "Name"])
            stream = await _service(tmp_path, events).export_from_source(source, "users")
            assert events.names() == ["export_started"]
            body = await _body(stream)
            return body, stream

        body, stream = asyncio.run(_run())
        started = events.named("export_started")[0].data
        assert started["filename"] == "users.csv"
        assert started["expected_count"] == 3
        assert started["options"]["format"] == "csv"
        assert events.names()[-1] == "export_completed"
        assert events.named("export_completed")[0].data["byte_size"] == len(body)
        assert stream.job.bytes_emitted == len(body)
        assert stream.job.finished_at is not None

    def test_descriptor_selects_chunk_size(self, tmp_path):
        events = RecordingExportEvents()

        async def _run():
            source = ArrayDataSource(_rows(1200), ["ID", "Name"])
            stream = await _service(tmp_path, events).export_from_source(
                source, "users", descriptor=SourceDescriptor(joins=1)
            )
            await _body(stream)
        asyncio.run(_run())
        assert [e.data["records_in_chunk"] for e in events.named("chunk_processed")] == [500, 500, 200]

    def test_idempotent_output(self, tmp_path):
        async def _run():
            service = _service(tmp_path, include_timestamp=True)
            first = await _body(await service.export_from_rows(PEOPLE, ["Name", "Email"], "p"))
            second = await _body(await service.export_from_rows(PEOPLE, ["Name", "Email"], "p"))
            assert first == second
        asyncio.run(_run())

    def test_pipe_to_sink(self, tmp_path):
        async def _run():
            source = ArrayDataSource(_rows(5), ["ID", "Name"])
            stream = await _service(tmp_path).export_from_source(source, "u", ExportOptions(chunk_size=2))
            sink = InMemoryByteSink()
            written = await stream.pipe(sink)
            assert written == len(sink.data)
            assert len(sink.writes) == 3
            assert sink.flushes == 3
            assert list(csv.reader(io.StringIO(sink.data.decode())))[-1] == ["5", "user5"]
        asyncio.run(_run())

    def test_failure_mid_stream(self, tmp_path):
        events = RecordingExportEvents()

        async def fetch(offset, limit):
            if offset >= 2:
                raise ConnectionError("db gone")
            return _rows(4)[offset : offset + limit]

        async def _run():
            source = CallableDataSource(fetch, ["ID", "Name"])
            stream = await _service(tmp_path, events).export_from_source(source, "u", ExportOptions(chunk_size=2))
            received = []
            with pytest.raises(StreamingError) as info:
                async for block in stream:
                    received.append(block)
            assert received == [b"ID,Name\n1,user1\n2,user2\n"]
            assert isinstance(info.value.cause, ConnectionError)
            assert info.value.progress["records_processed"] == 2
            assert stream.job.failed
        asyncio.run(_run())

        failed = events.named("export_failed")
        assert len(failed) == 1
        assert failed[0].data["progress"]["records_processed"] == 2
        assert events.count("export_completed") == 0

    def test_sink_failure(self, tmp_path):
        async def _run():
            source = ArrayDataSource(_rows(10), ["ID", "Name"])
            stream = await _service(tmp_path).export_from_source(source, "u", ExportOptions(chunk_size=2))
            with pytest.raises(ConnectionResetError):
                await stream.pipe(InMemoryByteSink(fail_after=1))
        asyncio.run(_run())

    def test_memory_warning_shrinks_chunks(self, tmp_path):
        events = RecordingExportEvents()
        memory = FakeMemoryProbe([100, 950], limit=1000)

        async def _run():
            source = ArrayDataSource(_rows(2000), ["ID", "Name"])
            stream = await _service(tmp_path, events, memory).export_from_source(source, "u")
            await _body(stream)
        asyncio.run(_run())

        sizes = [e.data["records_in_chunk"] for e in events.named("chunk_processed")]
        assert sizes[:5] == [1000, 500, 250, 125, 100]
        assert sum(sizes) == 2000
        assert events.count("memory_warning") == len(sizes)

    def test_execution_budget_override(self, tmp_path):
        events = RecordingExportEvents()
        clock = FakeClock()

        async def fetch(offset, limit):
            clock.advance(seconds=1)
            return _rows(3)[offset : offset + limit]

        async def _run():
            source = CallableDataSource(fetch, ["ID", "Name"])
            stream = await _service(tmp_path, events, clock=clock).export_from_source(
                source, "u", ExportOptions(chunk_size=1, max_execution_time=2)
            )
            await _body(stream)
        asyncio.run(_run())
        assert events.count("time_warning") == 1

    def test_transform_keys_follow_declared_column_order(self, tmp_path):
        async def _run():
            source = ArrayDataSource(
                _rows(2),
                ["ID", "Name"],
                columns=["id", "name"],
                transform=lambda r: {"name": r["name"], "id": r["id"]},
            )
            stream = await _service(tmp_path).export_from_source(source, "u")
            assert await _body(stream) == b"ID,Name\n1,user1\n2,user2\n"
        asyncio.run(_run())

    def test_overlapping_exports_with_same_name_time_themselves(self, tmp_path):
        events = RecordingExportEvents()
        clock = FakeClock()
        service = _service(tmp_path, events, clock=clock)

        async def _run():
            first = await service.export_from_source(ArrayDataSource(_rows(2), ["ID", "Name"]), "x")
            clock.advance(seconds=5)
            second = await service.export_from_source(ArrayDataSource(_rows(2), ["ID", "Name"]), "x")
            clock.advance(seconds=2)
            await _body(second)
            await _body(first)
        asyncio.run(_run())

        completed = events.named("export_completed")
        assert [e.data["filename"] for e in completed] == ["x.csv", "x.csv"]
        assert [e.data["duration"] for e in completed] == [2.0, 7.0]


# ---------------------------------------------------------------------------
# export_sheets
# ---------------------------------------------------------------------------
class TestExportSheets:
    def _sheet(self, name: str, rows=None, **kw) -> Sheet:
        return Sheet(name=name, source=ArrayDataSource(rows or _rows(2), ["ID", "Name"]), columns=["id", "name"], **kw)

    def test_two_sheets(self, tmp_path):
        events = RecordingExportEvents()

        async def _run():
            stream = await _service(tmp_path, events).export_sheets(
                [self._sheet("Users"), self._sheet("Admins", _rows(3))], "report.csv"
            )
            assert stream.filename == "report.xlsx"
            assert stream.job.sheet_names == ["Users", "Admins"]
            data = await _body(stream)
            with zipfile.ZipFile(io.BytesIO(data)) as archive:
                assert {"xl/worksheets/sheet1.xml", "xl/worksheets/sheet2.xml"} <= set(archive.namelist())
            assert os.listdir(tmp_path) == []
        asyncio.run(_run())
        assert events.named("export_started")[0].data["expected_count"] == 5
        assert events.named("export_completed")[0].data["actual_count"] == 5

    def test_headers_default_to_columns(self, tmp_path):
        async def _run():
            stream = await _service(tmp_path).export_sheets([self._sheet("Users")], "r")
            with zipfile.ZipFile(io.BytesIO(await _body(stream))) as archive:
                sheet = archive.read("xl/worksheets/sheet1.xml").decode()
            assert '<c r="A1" t="inlineStr"><is><t>id</t></is></c>' in sheet
        asyncio.run(_run())

    def test_transform_failure_row_two_of_three(self, tmp_path):
        events = RecordingExportEvents()

        def transform(row):
            if row["id"] == 2:
                raise ValueError("bad row")
            return {"id": row["id"], "name": row["name"].upper()}

        async def _run():
            sheet = self._sheet("Users", _rows(3), transform=transform, headers=["ID", "Name"])
            stream = await _service(tmp_path, events).export_sheets([sheet], "r")
            with zipfile.ZipFile(io.BytesIO(await _body(stream))) as archive:
                sheet_xml = archive.read("xl/worksheets/sheet1.xml").decode()
            assert sheet_xml.count("<row ") == 4
            assert "<t>USER1</t>" in sheet_xml
            assert "<t>user2</t>" in sheet_xml
            assert "<t>USER3</t>" in sheet_xml
        asyncio.run(_run())
        assert events.count("record_transform_failed") == 1

    def test_transform_reads_attributes_of_object_records(self, tmp_path):
        events = RecordingExportEvents()

        async def _run():
            sheet = Sheet(
                name="Users",
                source=ArrayDataSource([User(1, "ann"), User(2, "bo")], ["ID", "Name"]),
                columns=["id", "name"],
                transform=lambda user: {"id": user.id, "name": user.name.upper()},
            )
            stream = await _service(tmp_path, events).export_sheets([sheet], "r")
            with zipfile.ZipFile(io.BytesIO(await _body(stream))) as archive:
                sheet_xml = archive.read("xl/worksheets/sheet1.xml").decode()
            assert "<t>ANN</t>" in sheet_xml
            assert "<t>BO</t>" in sheet_xml
        asyncio.run(_run())
        assert events.count("record_transform_failed") == 0

    def test_sheet_columns_replace_source_columns(self, tmp_path):
        async def _run():
            source = ArrayDataSource(_rows(1), ["ID", "Name"], columns=["name", "id"])
            sheet = Sheet(name="Users", source=source, columns=["id"], headers=["ID"])
            stream = await _service(tmp_path).export_sheets([sheet], "r")
            with zipfile.ZipFile(io.BytesIO(await _body(stream))) as archive:
                sheet_xml = archive.read("xl/worksheets/sheet1.xml").decode()
            assert "<t>user1</t>" not in sheet_xml
            assert sheet_xml.count("<c ") == 2
        asyncio.run(_run())

    def test_empty_sheet_list(self, tmp_path):
        async def _run():
            with pytest.raises(EmptyDatasetError):
                await _service(tmp_path).export_sheets([], "r")
        asyncio.run(_run())

    @pytest.mark.parametrize("name", ["x" * 32, "Q1:Q2", "a/b", "a\\b", "what?", "a*", "[x]", "", "   "])
    def test_invalid_sheet_names(self, tmp_path, name):
        async def _run():
            with pytest.raises(InvalidSheetSpecError):
                await _service(tmp_path).export_sheets([self._sheet(name)], "r")
        asyncio.run(_run())

    def test_name_of_31_characters_accepted(self, tmp_path):
        async def _run():
            stream = await _service(tmp_path).export_sheets([self._sheet("x" * 31)], "r")
            await _body(stream)
        asyncio.run(_run())

    def test_duplicate_names(self, tmp_path):
        async def _run():
            with pytest.raises(InvalidSheetSpecError) as info:
                await _service(tmp_path).export_sheets([self._sheet("Users"), self._sheet("users")], "r")
            assert info.value.sheet == "users"
        asyncio.run(_run())

    def test_missing_columns(self, tmp_path):
        async def _run():
            sheet = Sheet(name="Users", source=ArrayDataSource(_rows(1), ["ID"]), columns=[])
            with pytest.raises(InvalidSheetSpecError):
                await _service(tmp_path).export_sheets([sheet], "r")
        asyncio.run(_run())

    def test_too_many_sheets(self, tmp_path):
        async def _run():
            sheets = [self._sheet(f"S{i}") for i in range(3)]
            with pytest.raises(InvalidSheetSpecError):
                await _service(tmp_path, max_sheets=2).export_sheets(sheets, "r")
        asyncio.run(_run())

    def test_invalid_sheet_chunk_size(self, tmp_path):
        async def _run():
            with pytest.raises(InvalidChunkSizeError):
                await _service(tmp_path).export_sheets([self._sheet("Users", chunk_size=0)], "r")
        asyncio.run(_run())

    def test_failure_while_building_cleans_up(self, tmp_path):
        events = RecordingExportEvents()

        async def fetch(offset, limit):
            raise ConnectionError("db gone")

        async def _run():
            sheet = Sheet(name="Broken", source=CallableDataSource(fetch, ["ID"]), columns=["id"])
            stream = await _service(tmp_path, events).export_sheets([self._sheet("Users"), sheet], "r")
            with pytest.raises(StreamingError):
                await _body(stream)
            assert os.listdir(tmp_path) == []
        asyncio.run(_run())
        assert events.count("export_failed") == 1
