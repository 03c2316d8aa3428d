from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from runner.report_builder import build_report
from runner.tree_render import render_tree
from runner.wire_analyzer import AnalyzerConfig, WireAnalyzer, flatten_roots
from shared.wire_types import RootTypeRef, WireAnalysisReport

logger = logging.getLogger(__name__)


class WireAnalysisService(Protocol):
    """wire 解析的服務介面定義。"""

    def analyze(
        self, work_dir: str, wire_file: str, search_pattern: str
    ) -> tuple[WireAnalysisReport, str]: ...

    def resolve(
        self, work_dir: str, roots: list[RootTypeRef], search_pattern: str
    ) -> tuple[WireAnalysisReport, str]: ...


class LocalWireAnalysisService:
    """在本機檔案系統上執行解析的 `WireAnalysisService` 實作。

    每次 request 建立新的 workspace，因此不會沿用舊的原始碼快取。
    """

    def analyze(
        self, work_dir: str, wire_file: str, search_pattern: str
    ) -> tuple[WireAnalysisReport, str]:
        """解析 wire 檔。

        Args:
            work_dir: Go module 或 package 所在目錄。
            wire_file: wire 檔路徑。
            search_pattern: 搜尋範圍。

        Returns:
            (report, tree 文字)。

        Raises:
            FileNotFoundError: work_dir 不存在。
            WireParseError: wire 檔無法解析。
        """
        root = _existing_dir(work_dir)
        wire_path = Path(wire_file).expanduser()
        if not wire_path.is_absolute():
            wire_path = root / wire_path
        analyzer = WireAnalyzer.from_config(
            AnalyzerConfig(work_dir=root, search_pattern=search_pattern)
        )
        roots, injectors = flatten_roots(analyzer.analyze_wire_file(wire_path))
        return build_report(roots, injectors), render_tree(roots)

    def resolve(
        self, work_dir: str, roots: list[RootTypeRef], search_pattern: str
    ) -> tuple[WireAnalysisReport, str]:
        """對指定的 root 型別建立 dependency tree。"""
        analyzer = WireAnalyzer.from_config(
            AnalyzerConfig(work_dir=_existing_dir(work_dir), search_pattern=search_pattern)
        )
        resolved = analyzer.resolve_roots(roots)
        return build_report(resolved), render_tree(resolved)


_service = LocalWireAnalysisService()


def get_wire_service() -> WireAnalysisService:
    """提供 wire analysis service 依賴注入。"""
    return _service


def _existing_dir(work_dir: str) -> Path:
    path = Path(work_dir).expanduser().resolve()
    if not path.is_dir():
        raise FileNotFoundError(f"work dir not found: {work_dir}")
    return path
