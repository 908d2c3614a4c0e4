from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure tests always import the local src tree, not an older installed wheel.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A metadata package with two production classes and one test class."""
    src = tmp_path / "src"
    classes = src / "classes"
    classes.mkdir(parents=True)
    (src / "package.xml").write_text("<Package/>")
    for name in ("A", "B", "ATest"):
        (classes / f"{name}.cls").write_text(f"public class {name} {{}}")
        (classes / f"{name}.cls-meta.xml").write_text("<ApexClass/>")
    return src
