"""
Import-boundary enforcement for the three packages.

1. Kernel independence  -- dairy_kernel/** may not import dairy_config or
                           dairy_services.
2. Domain purity        -- dairy_kernel/domain/** may not import SQLAlchemy,
                           db, models, services or selectors.
3. Selector read-only   -- dairy_kernel/selectors/** may not import services.
4. Flush-only services  -- kernel services never call commit() or rollback().
5. Invariants contract  -- dairy_kernel.invariants declares the kernel invariants.

All scanning is done via AST; these tests are read-only.
"""

import ast
import glob
from pathlib import Path

from dairy_kernel.invariants import (
    ALL_KERNEL_INVARIANTS,
    FORBIDDEN_KERNEL_IMPORTS,
    KernelInvariant,
)

ROOT = Path(__file__).resolve().parents[2]


def _python_files(package: str) -> list[str]:
    return sorted(glob.glob(f"{ROOT / package}/**/*.py", recursive=True))


def _extract_imports(filepath: str) -> list[tuple[int, str]]:
    tree = ast.parse(Path(filepath).read_text(), filename=filepath)
    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom) and node.module:
            results.append((node.lineno, node.module))
    return results


def _matches_any(module: str, prefixes: tuple[str, ...]) -> bool:
    return any(module == p or module.startswith(f"{p}.") for p in prefixes)


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    found = []
    for path in _python_files(package):
        for lineno, module in _extract_imports(path):
            if _matches_any(module, forbidden):
                found.append(f"{Path(path).relative_to(ROOT)}:{lineno} imports {module}")
    return found


def test_packages_exist():
    assert _python_files("dairy_kernel")
    assert _python_files("dairy_kernel/domain")


def test_kernel_does_not_import_outer_layers():
    assert _violations("dairy_kernel", FORBIDDEN_KERNEL_IMPORTS) == []


def test_config_does_not_import_services():
    assert _violations("dairy_config", ("dairy_services",)) == []


def test_domain_is_pure():
    forbidden = (
        "sqlalchemy",
        "dairy_kernel.db",
        "dairy_kernel.models",
        "dairy_kernel.services",
        "dairy_kernel.selectors",
    )
    assert _violations("dairy_kernel/domain", forbidden) == []


def test_selectors_do_not_import_services():
    assert _violations("dairy_kernel/selectors", ("dairy_kernel.services",)) == []


def test_kernel_services_never_commit():
    offenders = []
    for path in _python_files("dairy_kernel/services"):
        tree = ast.parse(Path(path).read_text(), filename=path)
        for node in ast.walk(tree):
            if (
                isinstance(node, ast.Call)
                and isinstance(node.func, ast.Attribute)
                and node.func.attr in ("commit", "rollback")
                and isinstance(node.func.value, ast.Attribute)
                and node.func.value.attr == "session"
            ):
                offenders.append(f"{Path(path).name}:{node.lineno}")
    assert offenders == []


def test_kernel_invariants_declared():
    declared = {invariant.value for invariant in ALL_KERNEL_INVARIANTS}
    assert declared == {
        "reservation_bounds",
        "single_active_deduction",
        "atomic_unit_of_work",
        "settled_is_final",
    }
    assert KernelInvariant.RESERVATION_BOUNDS in ALL_KERNEL_INVARIANTS
