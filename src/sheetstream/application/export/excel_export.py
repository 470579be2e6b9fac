"""Application export – SpreadsheetPackageBuilder.

Builds a minimal OOXML workbook (inline-string cells, no styles) without
holding a sheet in memory: every worksheet is streamed chunk by chunk into
its own temporary file, which is then deflated into the archive.
"""
from __future__ import annotations

import os
import tempfile
import zipfile
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, AsyncIterator, Iterator, Sequence

from sheetstream.application.export.chunking import ChunkSizePolicy, SourceDescriptor
from sheetstream.application.export.encoding import XmlRowEncoder, escape_attr
from sheetstream.application.export.errors import PackageAssemblyError
from sheetstream.application.export.request import ExportFormat
from sheetstream.application.export.sources import DataSource, RecordProjector
from sheetstream.config.settings import ExportSettings
from sheetstream.observability.logging import get_logger

if TYPE_CHECKING:
    from sheetstream.application.export.guardrails import ExportMonitor

__all__ = ["PackageArtifact", "SheetPlan", "SpreadsheetPackageBuilder"]

logger = get_logger(__name__)

_XML_DECL = '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
_MAIN_NS = "http://schemas.openxmlformats.org/spreadsheetml/2006/main"
_REL_NS = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
_PKG_REL_NS = "http://schemas.openxmlformats.org/package/2006/relationships"
_WORKSHEET_CT = "application/vnd.openxmlformats-officedocument.spreadsheetml.worksheet+xml"
_WORKBOOK_CT = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet.main+xml"

_ASSEMBLY_ERRORS = (OSError, zipfile.BadZipFile, zipfile.LargeZipFile)


@dataclass(frozen=True)
class SheetPlan:
    """One worksheet to build: what to read, how to label it, how to project rows.

    *projector* is handed to the source, which applies it to raw records.
    """

    name: str
    source: DataSource
    headers: Sequence[str]
    projector: RecordProjector | None = None
    chunk_size: int | None = None
    descriptor: SourceDescriptor | None = None


def content_types_xml(sheet_count: int) -> str:
    overrides = "".join(
        f'<Override PartName="/xl/worksheets/sheet{i}.xml" ContentType="{_WORKSHEET_CT}"/>'
        for i in range(1, sheet_count + 1)
    )
    return (
        f"{_XML_DECL}"
        '<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
        '<Default Extension="rels" ContentType="application/vnd.openxmlformats-package.relationships+xml"/>'
        '<Default Extension="xml" ContentType="application/xml"/>'
        f'<Override PartName="/xl/workbook.xml" ContentType="{_WORKBOOK_CT}"/>'
        f"{overrides}</Types>"
    )


def root_rels_xml() -> str:
    return (
        f'{_XML_DECL}<Relationships xmlns="{_PKG_REL_NS}">'
        f'<Relationship Id="rId1" Type="{_REL_NS}/officeDocument" Target="xl/workbook.xml"/>'
        "</Relationships>"
    )


def workbook_xml(sheet_names: Sequence[str]) -> str:
    sheets = "".join(
        f'<sheet name="{escape_attr(name)}" sheetId="{i}" r:id="rId{i}"/>'
        for i, name in enumerate(sheet_names, start=1)
    )
    return f'{_XML_DECL}<workbook xmlns="{_MAIN_NS}" xmlns:r="{_REL_NS}"><sheets>{sheets}</sheets></workbook>'


def workbook_rels_xml(sheet_count: int) -> str:
    rels = "".join(
        f'<Relationship Id="rId{i}" Type="{_REL_NS}/worksheet" Target="worksheets/sheet{i}.xml"/>'
        for i in range(1, sheet_count + 1)
    )
    return f'{_XML_DECL}<Relationships xmlns="{_PKG_REL_NS}">{rels}</Relationships>'


class PackageArtifact:
    """A finished package on disk, owned by whoever iterates it.

    :meth:`iter_bytes` deletes the file once iteration ends, whether the
    consumer read it all, stopped early or failed.
    """

    def __init__(self, path: str, sheet_names: Sequence[str]) -> None:
        self.path = path
        self.sheet_names = list(sheet_names)

    @property
    def size(self) -> int:
        return os.path.getsize(self.path)

    @property
    def exists(self) -> bool:
        return os.path.exists(self.path)

    async def iter_bytes(self, buffer_size: int = 8192) -> AsyncIterator[bytes]:
        try:
            with open(self.path, "rb") as handle:
                while True:
                    block = handle.read(buffer_size)
                    if not block:
                        break
                    yield block
        finally:
            self.discard()

    def discard(self) -> None:
        _unlink(self.path)


class SpreadsheetPackageBuilder:
    """Assembles sheets into a single ``.xlsx`` archive in a temp directory."""

    def __init__(
        self,
        settings: ExportSettings,
        policy: ChunkSizePolicy | None = None,
        *,
        encoder: XmlRowEncoder | None = None,
    ) -> None:
        self._settings = settings
        self._policy = policy or ChunkSizePolicy(settings)
        self._encoder = encoder or XmlRowEncoder()
        self._temp_dir = settings.temp_dir or None

    async def build(
        self,
        plans: Sequence[SheetPlan],
        filename: str,
        monitor: "ExportMonitor | None" = None,
    ) -> PackageArtifact:
        temp_files: list[str] = []
        archive_path: str | None = None
        archive: zipfile.ZipFile | None = None
        try:
            with _assembling("create the package file"):
                fd, archive_path = tempfile.mkstemp(prefix="export_", suffix=".xlsx", dir=self._temp_dir)
                os.close(fd)
                archive = zipfile.ZipFile(archive_path, "w", compression=zipfile.ZIP_DEFLATED)

            for index, plan in enumerate(plans, start=1):
                sheet_path = await self._write_worksheet(plan, temp_files, monitor)
                with _assembling(f"add sheet {plan.name!r}"):
                    archive.write(sheet_path, f"xl/worksheets/sheet{index}.xml")
                    logger.debug(
                        "export.worksheet_added",
                        filename=filename,
                        sheet=plan.name,
                        sheet_index=index,
                        temp_file_size=os.path.getsize(sheet_path),
                    )
                _unlink(sheet_path)

            names = [plan.name for plan in plans]
            with _assembling("write the package manifests"):
                archive.writestr("[Content_Types].xml", content_types_xml(len(plans)))
                archive.writestr("_rels/.rels", root_rels_xml())
                archive.writestr("xl/workbook.xml", workbook_xml(names))
                archive.writestr("xl/_rels/workbook.xml.rels", workbook_rels_xml(len(plans)))
                archive.close()
            archive = None
            return PackageArtifact(archive_path, names)
        except BaseException as exc:
            if archive is not None:
                try:
                    archive.close()
                except _ASSEMBLY_ERRORS:
                    pass
            if archive_path is not None:
                _unlink(archive_path)
            logger.error(
                "export.package_failed",
                filename=filename,
                sheets=[plan.name for plan in plans],
                exception_class=type(exc).__name__,
                exception_message=str(exc),
            )
            raise
        finally:
            for path in temp_files:
                _unlink(path)

    async def _write_worksheet(
        self,
        plan: SheetPlan,
        temp_files: list[str],
        monitor: "ExportMonitor | None",
    ) -> str:
        size = self._policy.resolve(plan.chunk_size, plan.descriptor, ExportFormat.XLSX)
        adaptive = self._policy.adaptive(size)
        with _assembling(f"create the worksheet file for {plan.name!r}"):
            fd, path = tempfile.mkstemp(prefix="worksheet_", suffix=".xml", dir=self._temp_dir)
            temp_files.append(path)
            try:
                handle = os.fdopen(fd, "w", encoding="utf-8")
            except BaseException:
                os.close(fd)
                raise

        cursor = None
        try:
            cursor = plan.source.chunks(size, plan.projector)
            with _assembling(f"write sheet {plan.name!r}"):
                handle.write(f'{_XML_DECL}<worksheet xmlns="{_MAIN_NS}"><sheetData>')
                handle.write(self._encoder.encode(1, plan.headers))
            row_index = 2
            while True:
                chunk = await cursor.next()
                if chunk is None:
                    break
                with _assembling(f"write sheet {plan.name!r}"):
                    handle.write(self._encoder.encode_many(row_index, (row.values() for row in chunk)))
                row_index += len(chunk)
                if monitor is not None:
                    monitor.after_chunk(len(chunk), cursor, adaptive, context=f"sheet {plan.name!r} chunk")
            with _assembling(f"write sheet {plan.name!r}"):
                handle.write("</sheetData></worksheet>")
        finally:
            handle.close()
            close = getattr(cursor, "close", None)
            if callable(close):
                close()
        return path


@contextmanager
def _assembling(step: str) -> Iterator[None]:
    """Turn file-system and archive failures inside the block into ``PackageAssemblyError``."""
    try:
        yield
    except _ASSEMBLY_ERRORS as exc:
        raise PackageAssemblyError(f"Could not {step}: {exc}", cause=exc) from exc


def _unlink(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
