import warnings
from pathlib import Path

import pytest

import cablepay

PKG_DIR = Path(cablepay.__file__).parent


@pytest.mark.parametrize("path", sorted(PKG_DIR.rglob("*.py")), ids=lambda p: str(p.relative_to(PKG_DIR)))
def test_module_compiles_without_warnings(path):
    # invalid string escapes surface as SyntaxWarning at compile time
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        compile(path.read_text(encoding="utf-8"), str(path), "exec")
