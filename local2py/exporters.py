# File: local2py/exporters.py
"""
local2py - Package Exporter (File-System Manager)
==================================================

Responsible for:
    1. Preparing ``<output>/<package_name>/`` (optionally wiping it first).
    2. Writing generated files atomically (write-to-temp then rename).
    3. Running the code formatter over the written package.
    4. Producing ``manifest.json`` with checksums of the final files.

Each file is written independently: a failed write is recorded and the
remaining files are still attempted.  Files already written are never
rolled back.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import shutil
import subprocess
import sys
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from local2py.models import GenerationConfig
from local2py.utils import count_lines, sha256_hex

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("local2py.exporters")

MANIFEST_FILE_NAME: str = "manifest.json"


# ---------------------------------------------------------------------------
# Data classes for export results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FileRecord:
    """Immutable record of a single exported file."""

    relative_path: str
    absolute_path: str
    size_bytes: int
    line_count: int
    sha256: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "relative_path": self.relative_path,
            "absolute_path": self.absolute_path,
            "size_bytes": self.size_bytes,
            "line_count": self.line_count,
            "sha256": self.sha256,
        }


@dataclass(slots=True)
class ExportManifest:
    """Every exported file with its checksum, serialisable to JSON."""

    package_name: str = ""
    schema_version: int = 0
    generator_version: str = ""
    export_timestamp: str = ""
    output_directory: str = ""
    formatted: bool = False
    files: List[FileRecord] = field(default_factory=list)

    @property
    def total_files(self) -> int:
        return len(self.files)

    @property
    def total_bytes(self) -> int:
        return sum(f.size_bytes for f in self.files)

    @property
    def total_lines(self) -> int:
        return sum(f.line_count for f in self.files)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "package_name": self.package_name,
            "schema_version": self.schema_version,
            "generator_version": self.generator_version,
            "export_timestamp": self.export_timestamp,
            "output_directory": self.output_directory,
            "formatted": self.formatted,
            "total_files": self.total_files,
            "total_bytes": self.total_bytes,
            "total_lines": self.total_lines,
            "files": [f.to_dict() for f in self.files],
        }

    def to_json(self, indent_size: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent_size, ensure_ascii=False)


# ---------------------------------------------------------------------------
# PackageExporter class
# ---------------------------------------------------------------------------


class PackageExporter:
    """
    Writes generated sources under ``<output_dir>/<package_name>/``.

    Usage::

        exporter = PackageExporter(config, Path("./build"))
        exporter.prepare()
        exporter.write_files({"models/todo_table.py": source})
        exporter.format_code()
        exporter.write_manifest(schema_version=1)

    Thread-safety: NOT thread-safe.  Use one exporter per output directory.
    """

    def __init__(self, config: GenerationConfig, output_dir: Path) -> None:
        self._config: GenerationConfig = config
        self._output_dir: Path = Path(output_dir).resolve()
        self._records: Dict[str, FileRecord] = {}
        self._errors: List[str] = []
        self._warnings: List[str] = []
        self._formatted: bool = False

        logger.debug("PackageExporter initialised: output_dir=%s.", self._output_dir)

    # -----------------------------------------------------------------
    # Properties
    # -----------------------------------------------------------------

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    @property
    def package_root(self) -> Path:
        return self._output_dir / self._config.package_name

    @property
    def errors(self) -> List[str]:
        return list(self._errors)

    @property
    def warnings(self) -> List[str]:
        return list(self._warnings)

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    def prepare(self) -> None:
        """
        Create the package root, wiping it first when ``clean_output`` is set.

        Only the package directory is removed; other content of the output
        directory is left alone.

        Raises:
            OSError: when the package root cannot be created.
        """
        root: Path = self.package_root
        if self._config.clean_output and root.exists():
            logger.info("Cleaning package directory: %s", root)
            shutil.rmtree(root)
        root.mkdir(parents=True, exist_ok=True)

    def write_files(self, files: Dict[str, str]) -> List[FileRecord]:
        """Write every ``relative_path → content`` pair; failures are recorded."""
        written: List[FileRecord] = []
        for rel_path, content in files.items():
            try:
                record: FileRecord = self._write_single_file(self.package_root / rel_path, content, rel_path)
            except OSError as exc:
                error_msg: str = f"Failed to write {rel_path}: {type(exc).__name__}: {exc}"
                self._errors.append(error_msg)
                logger.error(error_msg)
                continue
            self._records[rel_path] = record
            written.append(record)
        logger.info("Wrote %d file(s) to %s.", len(written), self.package_root)
        return written

    def format_code(self) -> bool:
        """
        Run ``black`` over the package root.

        Formatting is cosmetic: any failure becomes a warning and the
        unformatted files stay in place.
        """
        command: List[str] = [sys.executable, "-m", "black", "-q", str(self.package_root)]
        try:
            completed: subprocess.CompletedProcess = subprocess.run(
                command,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            self._warn(f"Formatter could not be started: {exc}")
            return False

        if completed.returncode != 0:
            detail: str = (completed.stderr or completed.stdout).strip()
            self._warn(f"Formatter exited with code {completed.returncode}: {detail}")
            return False

        self._formatted = True
        self._refresh_records()
        logger.info("Formatted %s with black.", self.package_root)
        return True

    def build_manifest(self, schema_version: int) -> ExportManifest:
        from local2py import __version__

        return ExportManifest(
            package_name=self._config.package_name,
            schema_version=schema_version,
            generator_version=__version__,
            export_timestamp=time.strftime("%Y-%m-%dT%H:%M:%S%z"),
            output_directory=str(self._output_dir),
            formatted=self._formatted,
            files=sorted(self._records.values(), key=lambda r: r.relative_path),
        )

    def write_manifest(self, schema_version: int) -> Optional[Path]:
        """Write ``manifest.json`` next to the package; a failure is a warning."""
        manifest_path: Path = self._output_dir / MANIFEST_FILE_NAME
        try:
            self._atomic_write(manifest_path, self.build_manifest(schema_version).to_json().encode("utf-8"))
        except OSError as exc:
            self._warn(f"Could not write manifest: {exc}")
            return None
        logger.debug("Wrote manifest to %s.", manifest_path)
        return manifest_path

    # -----------------------------------------------------------------
    # Internal: file writing
    # -----------------------------------------------------------------

    def _warn(self, message: str) -> None:
        self._warnings.append(message)
        logger.warning(message)

    def _write_single_file(self, full_path: Path, content: str, rel_path: str) -> FileRecord:
        full_path.parent.mkdir(parents=True, exist_ok=True)
        self._atomic_write(full_path, content.encode("utf-8"))
        logger.debug("Wrote file: %s (%d lines).", rel_path, count_lines(content))
        return self._record(full_path, content, rel_path)

    @staticmethod
    def _record(full_path: Path, content: str, rel_path: str) -> FileRecord:
        return FileRecord(
            relative_path=rel_path,
            absolute_path=str(full_path),
            size_bytes=len(content.encode("utf-8")),
            line_count=count_lines(content),
            sha256=sha256_hex(content),
        )

    def _refresh_records(self) -> None:
        """Re-hash written files after the formatter rewrote them."""
        for rel_path, record in list(self._records.items()):
            try:
                content: str = Path(record.absolute_path).read_text(encoding="utf-8")
            except OSError as exc:
                self._warn(f"Could not re-read {rel_path} after formatting: {exc}")
                continue
            self._records[rel_path] = self._record(Path(record.absolute_path), content, rel_path)

    @staticmethod
    def _atomic_write(target_path: Path, data: bytes) -> None:
        """
        Write ``data`` through a temporary file in the same directory, then
        ``os.replace`` it over the target.

        Raises:
            OSError: the temporary file is removed and the error propagates.
        """
        fd, tmp_path = tempfile.mkstemp(
            dir=str(target_path.parent),
            prefix=f".{target_path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, str(target_path))
        except OSError:
            with contextlib.suppress(OSError):
                os.unlink(tmp_path)
            raise


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ExportManifest",
    "FileRecord",
    "MANIFEST_FILE_NAME",
    "PackageExporter",
]

logger.debug("local2py.exporters loaded.")
