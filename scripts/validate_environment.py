#!/usr/bin/env python3
"""Validate local parking ledger environment readiness."""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from datetime import date, time
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.domain.constraints import SLOTS_PER_DAY, TOTAL_SPOTS
from backend.domain.slot_clock import slot_index
from backend.repository.ledger_repository import LedgerRepository
from backend.services.ledger_service import AvailabilityLedger
from backend.services.planner_service import AssignmentPlanner
from backend.utils.config import get_settings

SEPARATOR_LINE = "=" * 44
SMOKE_DATE = date(2030, 1, 7)
SMOKE_START = time(10, 0)


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="parking-env-")

    # CHECK 1: Python version >= 3.10
    if sys.version_info >= (3, 10):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.10",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2: Required packages importable
    package_specs = [
        ("fastapi", "fastapi"),
        ("uvicorn", "uvicorn"),
        ("pydantic", "pydantic"),
        ("requests", "requests"),
        ("httpx", "httpx"),
        ("pytest", "pytest"),
    ]
    import_errors: list[str] = []
    for module_name, dist_name in package_specs:
        try:
            importlib.import_module(module_name)
            version(dist_name)
        except (ImportError, PackageNotFoundError) as exc:
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    try:
        validation_settings = replace(
            get_settings(),
            database_path=Path(temp_dir) / "parking_validation.db",
        )
        repository = LedgerRepository(validation_settings)
        ledger = AvailabilityLedger(repository=repository, settings=validation_settings)

        # CHECK 3: Database initialization
        try:
            repository.initialize_database()
            ok, line = _print_result("Database initialization", True)
        except Exception as exc:
            ok, line = _print_result("Database initialization", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 4: Ledger population (96 slots x 100 spots)
        try:
            repository.ensure_ledger_dates([SMOKE_DATE])
            aggregates = repository.list_aggregates(SMOKE_DATE)
            if len(aggregates) != SLOTS_PER_DAY:
                raise RuntimeError(f"expected {SLOTS_PER_DAY} slots, got {len(aggregates)}")
            if any(row.free_spots != TOTAL_SPOTS for row in aggregates):
                raise RuntimeError("fresh ledger date has occupied spots")
            ok, line = _print_result(
                "Ledger population",
                True,
                f": {SLOTS_PER_DAY} slots x {TOTAL_SPOTS} spots",
            )
        except Exception as exc:
            ok, line = _print_result("Ledger population", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 5: Planning smoke run
        try:
            planner = AssignmentPlanner()
            snapshot = ledger.snapshot(SMOKE_DATE, slot_index(SMOKE_START), planner.max_slots)
            assignment = planner.plan(snapshot, SMOKE_DATE, SMOKE_START)
            if assignment is None or assignment.spot != 1:
                raise RuntimeError(f"expected spot 1 on an empty ledger, got {assignment}")
            ok, line = _print_result(
                "Assignment planning",
                True,
                f": spot={assignment.spot} hours={assignment.duration_hours:.1f}",
            )
        except Exception as exc:
            ok, line = _print_result("Assignment planning", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" Parking Ledger Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
