"""Unit tests for SpreadsheetPackageBuilder and PackageArtifact."""
from __future__ import annotations

import asyncio
import io
import os
import re
import tempfile
import zipfile

import pytest

from sheetstream.application.export import (
    ArrayDataSource,
    CallableDataSource,
    InvalidChunkSizeError,
    PackageArtifact,
    PackageAssemblyError,
    RecordProjector,
    SheetPlan,
    SpreadsheetPackageBuilder,
)
from sheetstream.config import ExportSettings


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------
def _builder(tmp_path) -> SpreadsheetPackageBuilder:
    return SpreadsheetPackageBuilder(ExportSettings(temp_dir=str(tmp_path)))


def _plan(name: str, rows: list[dict], headers=("ID", "Name"), **kw) -> SheetPlan:
    return SheetPlan(name=name, source=ArrayDataSource(rows, list(headers)), headers=list(headers), **kw)


async def _read(artifact: PackageArtifact) -> bytes:
    return b"".join([block async for block in artifact.iter_bytes(1024)])


USERS = [{"id": 1, "name": "Ann"}, {"id": 2, "name": "Bo & Co"}]
ORDERS = [{"id": 10, "name": "<widget>"}]


class TestStructure:
    def test_parts_and_manifests(self, tmp_path):
        async def _run():
            artifact = await _builder(tmp_path).build([_plan("Users", USERS), _plan("Orders", ORDERS)], "out.xlsx")
            data = await _read(artifact)
            with zipfile.ZipFile(io.BytesIO(data)) as archive:
                names = set(archive.namelist())
                assert names == {
                    "[Content_Types].xml",
                    "_rels/.rels",
                    "xl/workbook.xml",
                    "xl/_rels/workbook.xml.rels",
                    "xl/worksheets/sheet1.xml",
                    "xl/worksheets/sheet2.xml",
                }
                content_types = archive.read("[Content_Types].xml").decode()
                workbook = archive.read("xl/workbook.xml").decode()
                rels = archive.read("xl/_rels/workbook.xml.rels").decode()

            assert 'PartName="/xl/worksheets/sheet1.xml"' in content_types
            assert 'PartName="/xl/worksheets/sheet2.xml"' in content_types
            assert 'PartName="/xl/workbook.xml"' in content_types
            assert re.findall(r'<sheet name="([^"]+)" sheetId="(\d+)" r:id="(rId\d+)"/>', workbook) == [
                ("Users", "1", "rId1"),
                ("Orders", "2", "rId2"),
            ]
            assert 'Id="rId1"' in rels and 'Target="worksheets/sheet1.xml"' in rels
            assert 'Id="rId2"' in rels and 'Target="worksheets/sheet2.xml"' in rels
        asyncio.run(_run())

    def test_worksheet_rows(self, tmp_path):
        async def _run():
            artifact = await _builder(tmp_path).build([_plan("Users", USERS)], "out.xlsx")
            with zipfile.ZipFile(io.BytesIO(await _read(artifact))) as archive:
                sheet = archive.read("xl/worksheets/sheet1.xml").decode()
            assert sheet.startswith('<?xml version="1.0" encoding="UTF-8" standalone="yes"?>')
            assert '<worksheet xmlns="http://schemas.openxmlformats.org/spreadsheetml/2006/main"><sheetData>' in sheet
            assert '<row r="1"><c r="A1" t="inlineStr"><is><t>ID</t></is></c>' in sheet
            assert '<c r="B3" t="inlineStr"><is><t>Bo &amp; Co</t></is></c>' in sheet
            assert sheet.endswith("</sheetData></worksheet>")
        asyncio.run(_run())

    def test_sheet_name_is_escaped_in_workbook(self, tmp_path):
        async def _run():
            artifact = await _builder(tmp_path).build([_plan('Q&A "raw"', USERS)], "out.xlsx")
            with zipfile.ZipFile(io.BytesIO(await _read(artifact))) as archive:
                workbook = archive.read("xl/workbook.xml").decode()
            assert 'name="Q&amp;A &quot;raw&quot;"' in workbook
        asyncio.run(_run())

    def test_rows_follow_across_chunks(self, tmp_path):
        async def _run():
            rows = [{"id": i, "name": f"n{i}"} for i in range(1, 8)]
            artifact = await _builder(tmp_path).build([_plan("S", rows, chunk_size=3)], "out.xlsx")
            with zipfile.ZipFile(io.BytesIO(await _read(artifact))) as archive:
                sheet = archive.read("xl/worksheets/sheet1.xml").decode()
            assert re.findall(r'<row r="(\d+)">', sheet) == [str(i) for i in range(1, 9)]
        asyncio.run(_run())

    def test_projector_applied(self, tmp_path):
        async def _run():
            plan = _plan(
                "S",
                USERS,
                headers=("Name",),
                projector=RecordProjector(["name"], transform=lambda r: {"name": r["name"].upper()}),
            )
            artifact = await _builder(tmp_path).build([plan], "out.xlsx")
            with zipfile.ZipFile(io.BytesIO(await _read(artifact))) as archive:
                sheet = archive.read("xl/worksheets/sheet1.xml").decode()
            assert "<t>ANN</t>" in sheet
            assert '<c r="B2"' not in sheet
        asyncio.run(_run())

    def test_opens_with_openpyxl(self, tmp_path):
        openpyxl = pytest.importorskip("openpyxl")

        async def _run():
            artifact = await _builder(tmp_path).build([_plan("Users", USERS), _plan("Orders", ORDERS)], "out.xlsx")
            return await _read(artifact)

        workbook = openpyxl.load_workbook(io.BytesIO(asyncio.run(_run())))
        assert workbook.sheetnames == ["Users", "Orders"]
        values = [[cell.value for cell in row] for row in workbook["Users"].iter_rows()]
        assert values == [["ID", "Name"], ["1", "Ann"], ["2", "Bo & Co"]]


class TestCleanup:
    def test_temp_files_removed_after_streaming(self, tmp_path):
        async def _run():
            artifact = await _builder(tmp_path).build([_plan("Users", USERS)], "out.xlsx")
            assert os.listdir(tmp_path) == [os.path.basename(artifact.path)]
            await _read(artifact)
            assert os.listdir(tmp_path) == []
        asyncio.run(_run())

    def test_early_stop_still_deletes_package(self, tmp_path):
        async def _run():
            artifact = await _builder(tmp_path).build([_plan("Users", USERS)], "out.xlsx")
            blocks = artifact.iter_bytes(16)
            await blocks.__anext__()
            await blocks.aclose()
            assert not artifact.exists
        asyncio.run(_run())

    def test_discard(self, tmp_path):
        async def _run():
            artifact = await _builder(tmp_path).build([_plan("Users", USERS)], "out.xlsx")
            artifact.discard()
            artifact.discard()
            assert os.listdir(tmp_path) == []
        asyncio.run(_run())

    def test_source_failure_removes_everything(self, tmp_path):
        async def fetch(offset, limit):
            if offset:
                raise ConnectionError("db gone")
            return [{"id": 1, "name": "Ann"}]

        async def _run():
            plans = [_plan("Users", USERS), SheetPlan("Broken", CallableDataSource(fetch, ["ID"]), ["ID"], chunk_size=1)]
            with pytest.raises(ConnectionError):
                await _builder(tmp_path).build(plans, "out.xlsx")
            assert os.listdir(tmp_path) == []
        asyncio.run(_run())

    def test_invalid_chunk_size_propagates_unchanged(self, tmp_path):
        async def _run():
            with pytest.raises(InvalidChunkSizeError):
                await _builder(tmp_path).build([_plan("Users", USERS, chunk_size=-1)], "out.xlsx")
            assert os.listdir(tmp_path) == []
        asyncio.run(_run())

    def test_io_failure_becomes_package_assembly_error(self, tmp_path):
        missing = tmp_path / "does-not-exist"
        builder = SpreadsheetPackageBuilder(ExportSettings(temp_dir=str(missing)))

        async def _run():
            with pytest.raises(PackageAssemblyError) as info:
                await builder.build([_plan("Users", USERS)], "out.xlsx")
            assert isinstance(info.value.cause, OSError)
        asyncio.run(_run())

    def test_descriptor_closed_when_worksheet_cannot_be_opened(self, tmp_path, monkeypatch):
        opened: list[int] = []
        closed: list[int] = []
        real_mkstemp = tempfile.mkstemp
        real_close = os.close

        def mkstemp(*args, **kwargs):
            fd, path = real_mkstemp(*args, **kwargs)
            opened.append(fd)
            return fd, path

        def close(fd):
            closed.append(fd)
            real_close(fd)

        def fdopen(*args, **kwargs):
            raise OSError("too many open files")

        monkeypatch.setattr(tempfile, "mkstemp", mkstemp)
        monkeypatch.setattr(os, "close", close)
        monkeypatch.setattr(os, "fdopen", fdopen)

        async def _run():
            with pytest.raises(PackageAssemblyError):
                await _builder(tmp_path).build([_plan("Users", USERS)], "out.xlsx")
        asyncio.run(_run())
        monkeypatch.undo()

        assert opened
        assert set(opened) <= set(closed)
        assert os.listdir(tmp_path) == []
