"""Screenshot classifier — reconciles local screenshots with the baseline set."""

from __future__ import annotations

import logging
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping

from vrt.exceptions import ConfigurationError
from vrt.models.comparison import BaselineManifest, ComparisonResult
from vrt.models.config import DiffOptions

from .differ import compare_files

logger = logging.getLogger(__name__)

DIFF_PREFIX = "diff-"


def list_screenshots(directory: str | Path) -> list[str]:
    """Return the non-hidden PNG filenames directly inside ``directory``."""
    directory = Path(directory)
    if not directory.is_dir():
        return []
    return sorted(
        p.name for p in directory.iterdir()
        if p.is_file() and p.suffix == ".png" and not p.name.startswith(".")
    )


def baseline_lookup(manifest: BaselineManifest) -> Mapping[str, Path]:
    """Build the read-only ``filename -> baseline path`` lookup for one run.

    Baseline files are stored under their remote relative paths
    (``screenshots/home.png``); screenshots are matched by basename.
    """
    lookup: dict[str, Path] = {}
    for file in manifest.files:
        lookup[Path(file).name] = Path(manifest.output_dir) / file
    return MappingProxyType(lookup)


def validate_threshold(threshold: float) -> None:
    if not 0 <= threshold <= 100:
        raise ConfigurationError(
            f"Invalid threshold: {threshold}. Must be a number between 0 and 100."
        )


def validate_pixel_threshold(pixel_threshold: float) -> None:
    if not 0 <= pixel_threshold <= 1:
        raise ConfigurationError(
            f"Invalid pixel-threshold: {pixel_threshold}. Must be a number between 0 and 1."
        )


def classify_screenshots(
    local_dir: str | Path,
    local_names: Iterable[str],
    baseline_paths: Mapping[str, Path],
    output_dir: str | Path,
    options: DiffOptions,
    threshold: float,
) -> list[ComparisonResult]:
    """Assign a status to every screenshot in local ∪ baseline.

    Names only present locally are ``new``; names only in the baseline are
    ``missing``. Names present on both sides are diffed and pass when the
    diff percentage is at or below ``threshold``. A diff artifact written for
    a passing comparison is still reported through ``diff_path``.
    """
    validate_threshold(threshold)
    validate_pixel_threshold(options.pixel_threshold)

    local_dir = Path(local_dir)
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    local = set(local_names)
    results: list[ComparisonResult] = []

    for name in sorted(local | set(baseline_paths)):
        current_path = local_dir / name
        baseline_path = baseline_paths.get(name)

        if baseline_path is None:
            logger.debug("New screenshot: %s", name)
            results.append(ComparisonResult(name=name, status="new", current_path=str(current_path)))
            continue

        if name not in local:
            logger.debug("Missing screenshot: %s", name)
            results.append(ComparisonResult(name=name, status="missing", baseline_path=str(baseline_path)))
            continue

        diff_path = output_dir / f"{DIFF_PREFIX}{name}"
        diff = compare_files(baseline_path, current_path, diff_path, options)
        status = "pass" if diff.diff_percentage <= threshold else "fail"
        logger.info("[%s] %s: %.3f%% diff", status.upper(), name, diff.diff_percentage)

        results.append(ComparisonResult(
            name=name,
            status=status,
            diff_pixels=diff.diff_pixels,
            total_pixels=diff.total_pixels,
            diff_percentage=diff.diff_percentage,
            diff_path=str(diff_path) if diff.diff_pixels > 0 else None,
            baseline_path=str(baseline_path),
            current_path=str(current_path),
        ))

    return results
