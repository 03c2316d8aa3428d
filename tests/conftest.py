from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"


@pytest.fixture
def basic_module() -> Path:
    """tests/fixtures/basic 的 Go module 根目錄。"""
    return FIXTURES_DIR / "basic"


@pytest.fixture
def write_module(tmp_path: Path) -> Callable[[dict[str, str]], Path]:
    """在 tmp_path 建立 Go module（相對路徑 → 原始碼）。"""

    def _write(files: dict[str, str]) -> Path:
        for rel_path, source in files.items():
            path = tmp_path / rel_path
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(source, encoding="utf-8")
        return tmp_path

    return _write
