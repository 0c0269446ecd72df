# File: local2py/generator.py
"""
local2py - Generation Pipeline (Orchestrator)
==============================================

Connects every phase together:

    YAML document → Loader/Validator → Generators → Exporter

Workflow::

    1. Load the document and build ``Schema`` + ``GenerationConfig``.
       A ``SchemaError`` ends the run here: nothing is written.
    2. Prepare ``<output>/<package_name>/``.
    3. Run the stages in order, writing each stage's files as soon as it
       finishes:  utils → models → services → database → exports.
    4. Format the package with black (best effort).
    5. Write ``manifest.json``.

Error handling strategy:
    - ``SchemaError`` is reported, never raised, by the ``generate_from_*``
      entry points.
    - ``GenerationError`` aborts the remaining stages; files written by
      earlier stages stay on disk.
    - ``OSError`` while writing one file is recorded and the run continues.
    - The final report gives a single pass/fail verdict.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from local2py.database_generator import DatabaseGenerator
from local2py.errors import GenerationError, SchemaError
from local2py.export_generator import ExportGenerator
from local2py.exporters import ExportManifest, FileRecord, PackageExporter
from local2py.loader import load_document, load_generation_config, load_schema
from local2py.model_generator import ModelGenerator
from local2py.models import GenerationConfig, Schema
from local2py.service_generator import ServiceGenerator
from local2py.utils import Timer

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("local2py.generator")


# ---------------------------------------------------------------------------
# Generation report
# ---------------------------------------------------------------------------


@dataclass(frozen=False, slots=True)
class GenerationStepMetric:
    """Timing and outcome for a single pipeline step."""

    step_name: str = ""
    success: bool = True
    elapsed_seconds: float = 0.0
    detail: str = ""


@dataclass(frozen=False, slots=True)
class GenerationReport:
    """
    Outcome of one generation run.

    Errors are split by origin so callers (the CLI in particular) can tell
    an unreadable input from an invalid schema, a generator failure or a
    filesystem problem.
    """

    success: bool = False
    package_name: str = ""
    output_directory: str = ""
    schema_version: int = 0

    total_files: int = 0
    total_bytes: int = 0
    total_lines: int = 0
    total_elapsed_seconds: float = 0.0

    generated_files: List[str] = field(default_factory=list)
    step_metrics: List[GenerationStepMetric] = field(default_factory=list)
    input_errors: List[str] = field(default_factory=list)
    schema_errors: List[str] = field(default_factory=list)
    generation_errors: List[str] = field(default_factory=list)
    export_errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    manifest: Optional[ExportManifest] = None

    @property
    def errors(self) -> List[str]:
        return [
            *self.input_errors,
            *self.schema_errors,
            *self.generation_errors,
            *self.export_errors,
        ]

    def summary(self) -> str:
        """Return a human-readable summary string."""
        lines: List[str] = []
        status: str = "✅ SUCCESS" if self.success else "❌ FAILED"
        lines.append("=" * 60)
        lines.append("  local2py: Generation Report")
        lines.append("=" * 60)
        lines.append(f"  Status:           {status}")
        lines.append(f"  Package:          {self.package_name}")
        lines.append(f"  Output:           {self.output_directory}")
        lines.append(f"  Schema version:   {self.schema_version}")
        lines.append(f"  Files generated:  {self.total_files}")
        lines.append(f"  Total lines:      {self.total_lines:,}")
        lines.append(f"  Total bytes:      {self.total_bytes:,}")
        lines.append(f"  Total time:       {self.total_elapsed_seconds:.3f}s")
        lines.append("─" * 60)

        if self.step_metrics:
            lines.append("  Pipeline Steps:")
            for step in self.step_metrics:
                icon: str = "✓" if step.success else "✗"
                lines.append(
                    f"    {icon} {step.step_name:<22s} {step.elapsed_seconds:>7.3f}s  {step.detail}"
                )

        sections: Tuple[Tuple[str, List[str], str], ...] = (
            ("Input Errors", self.input_errors, "✗"),
            ("Schema Errors", self.schema_errors, "✗"),
            ("Generation Errors", self.generation_errors, "✗"),
            ("Export Errors", self.export_errors, "✗"),
            ("Warnings", self.warnings, "⚠"),
        )
        for title, entries, icon in sections:
            if entries:
                lines.append("─" * 60)
                lines.append(f"  {title} ({len(entries)}):")
                lines.extend(f"    {icon} {entry}" for entry in entries)

        lines.append("=" * 60)
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Local2PyGenerator: master orchestrator
# ---------------------------------------------------------------------------


class Local2PyGenerator:
    """
    Pipeline orchestrator.

    Usage::

        generator = Local2PyGenerator()

        report = generator.generate_from_file(Path("local2py.yaml"), Path("./build"))
        print(report.summary())

    ``generate`` takes an already built ``Schema`` and uses the config given
    to the constructor.  ``generate_from_file`` and ``generate_from_document``
    read the document's optional ``config`` section instead, with
    ``overrides`` applied on top.

    The generator is reusable: create once, call ``generate*`` many times.
    """

    def __init__(self, config: Optional[GenerationConfig] = None) -> None:
        self._config: GenerationConfig = config or GenerationConfig()
        logger.debug("Local2PyGenerator initialised: package=%s.", self._config.package_name)

    @property
    def config(self) -> GenerationConfig:
        return self._config

    # -----------------------------------------------------------------
    # Public: entry points
    # -----------------------------------------------------------------

    def generate_from_file(
        self,
        schema_path: Path,
        output_dir: Path,
        *,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> GenerationReport:
        """Full pipeline: load file → validate → generate → export."""
        report: GenerationReport = GenerationReport(output_directory=str(Path(output_dir).resolve()))
        pipeline_start: float = time.perf_counter()

        with Timer("load_document") as timer:
            try:
                raw: Dict[str, Any] = load_document(Path(schema_path))
            except SchemaError as exc:
                report.input_errors.append(str(exc))
                report.step_metrics.append(
                    GenerationStepMetric("Load Document", False, timer.elapsed, exc.message)
                )
                return self._finalise_report(report, time.perf_counter() - pipeline_start)

        report.step_metrics.append(
            GenerationStepMetric("Load Document", True, timer.elapsed, f"from {Path(schema_path).name}")
        )
        return self._generate_from_raw(raw, Path(output_dir), overrides, report, pipeline_start)

    def generate_from_document(
        self,
        raw: Mapping[str, Any],
        output_dir: Path,
        *,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> GenerationReport:
        """Pipeline for an already parsed document (nested dicts and lists)."""
        report: GenerationReport = GenerationReport(output_directory=str(Path(output_dir).resolve()))
        return self._generate_from_raw(raw, Path(output_dir), overrides, report, time.perf_counter())

    def generate(self, schema: Schema, output_dir: Path) -> GenerationReport:
        """Pipeline for a built ``Schema`` using the constructor's config."""
        report: GenerationReport = GenerationReport(output_directory=str(Path(output_dir).resolve()))
        return self._run_pipeline(schema, self._config, Path(output_dir), report, time.perf_counter())

    # -----------------------------------------------------------------
    # Internal: loading
    # -----------------------------------------------------------------

    def _generate_from_raw(
        self,
        raw: Any,
        output_dir: Path,
        overrides: Optional[Mapping[str, Any]],
        report: GenerationReport,
        pipeline_start: float,
    ) -> GenerationReport:
        with Timer("load_schema") as timer:
            try:
                schema: Schema = load_schema(raw, report.warnings)
                config: GenerationConfig = load_generation_config(
                    raw if isinstance(raw, Mapping) else {},
                    overrides,
                )
            except SchemaError as exc:
                target: List[str] = (
                    report.input_errors if exc.kind == "malformed_document" else report.schema_errors
                )
                if exc.errors:
                    target.extend(str(err) for err in exc.errors)
                else:
                    target.append(str(exc))
                report.step_metrics.append(
                    GenerationStepMetric("Validate Schema", False, timer.elapsed, exc.message)
                )
                return self._finalise_report(report, time.perf_counter() - pipeline_start)

        report.step_metrics.append(GenerationStepMetric(
            "Validate Schema",
            True,
            timer.elapsed,
            f"{len(schema.tables)} table(s), {len(schema.all_queries)} query(ies)",
        ))
        return self._run_pipeline(schema, config, output_dir, report, pipeline_start)

    # -----------------------------------------------------------------
    # Internal: master pipeline
    # -----------------------------------------------------------------

    def _run_pipeline(
        self,
        schema: Schema,
        config: GenerationConfig,
        output_dir: Path,
        report: GenerationReport,
        pipeline_start: float,
    ) -> GenerationReport:
        report.package_name = config.package_name
        report.schema_version = schema.version

        exporter: PackageExporter = PackageExporter(config, output_dir)
        try:
            exporter.prepare()
        except OSError as exc:
            report.export_errors.append(f"Cannot prepare {exporter.package_root}: {exc}")
            return self._finalise_report(report, time.perf_counter() - pipeline_start)

        exports: ExportGenerator = ExportGenerator(config)
        stages: Tuple[Tuple[str, Callable[[], Dict[str, str]]], ...] = (
            ("Runtime Helpers", exports.generate_runtime),
            ("Row Models", lambda: ModelGenerator(config).generate_all(schema)),
            ("Services", lambda: ServiceGenerator(config, report.warnings).generate_all(schema)),
            ("Database Instance", lambda: DatabaseGenerator(config).generate_all(schema)),
            ("Package Exports", lambda: exports.generate_all(schema)),
        )

        for step_name, build in stages:
            if not self._run_stage(step_name, build, exporter, report):
                break
        else:
            if config.format_output:
                self._step_format(exporter, report)
            if config.generate_manifest:
                exporter.write_manifest(schema.version)

        report.export_errors.extend(exporter.errors)
        report.warnings.extend(w for w in exporter.warnings if w not in report.warnings)
        report.manifest = exporter.build_manifest(schema.version)
        report.total_files = report.manifest.total_files
        report.total_bytes = report.manifest.total_bytes
        report.total_lines = report.manifest.total_lines
        return self._finalise_report(report, time.perf_counter() - pipeline_start)

    def _run_stage(
        self,
        step_name: str,
        build: Callable[[], Dict[str, str]],
        exporter: PackageExporter,
        report: GenerationReport,
    ) -> bool:
        """Generate one stage and write it; ``False`` stops the pipeline."""
        errors_before: int = len(exporter.errors)
        with Timer(step_name) as timer:
            try:
                files: Dict[str, str] = build()
            except GenerationError as exc:
                report.generation_errors.append(str(exc))
                logger.error("Generation failed in %s: %s", step_name, exc)
                report.step_metrics.append(GenerationStepMetric(step_name, False, timer.elapsed, str(exc)))
                return False
            written: List[FileRecord] = exporter.write_files(files)

        package: str = exporter.package_root.name
        report.generated_files.extend(f"{package}/{record.relative_path}" for record in written)
        report.step_metrics.append(GenerationStepMetric(
            step_name,
            len(exporter.errors) == errors_before,
            timer.elapsed,
            f"{len(written)}/{len(files)} file(s)",
        ))
        return True

    @staticmethod
    def _step_format(exporter: PackageExporter, report: GenerationReport) -> None:
        with Timer("format") as timer:
            formatted: bool = exporter.format_code()
        report.step_metrics.append(GenerationStepMetric(
            "Format (black)",
            formatted,
            timer.elapsed,
            "formatted" if formatted else "skipped, see warnings",
        ))

    # -----------------------------------------------------------------
    # Internal: finalise report
    # -----------------------------------------------------------------

    @staticmethod
    def _finalise_report(report: GenerationReport, total_elapsed: float) -> GenerationReport:
        report.total_elapsed_seconds = total_elapsed
        report.success = not report.errors
        if report.success:
            logger.info("Generation succeeded: %d file(s) in %.3fs.", report.total_files, total_elapsed)
        else:
            logger.error("Generation failed with %d error(s).", len(report.errors))
        return report


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "GenerationReport",
    "GenerationStepMetric",
    "Local2PyGenerator",
]

logger.debug("local2py.generator loaded.")
