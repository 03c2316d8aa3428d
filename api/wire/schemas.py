from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from shared.wire_types import RootTypeRef, WireAnalysisReport


class AnalyzeRequest(BaseModel):
    """解析 wire 檔的 request DTO。"""

    work_dir: str = Field(..., description="Go module 或 package 所在目錄。")
    wire_file: str = Field(
        default="wire.go", description="wire 檔路徑（相對路徑以 work_dir 為基準）。"
    )
    search_pattern: str = "./..."
    format: Literal["json", "tree"] = "json"


class ResolveRequest(BaseModel):
    """直接指定 root 型別的 request DTO。"""

    work_dir: str
    roots: list[RootTypeRef] = Field(..., min_length=1)
    search_pattern: str = "./..."
    format: Literal["json", "tree"] = "json"


class AnalyzeResponse(BaseModel):
    """解析結果的 response DTO。

    ``tree`` 只在 request 指定 ``format="tree"`` 時提供。
    """

    report: WireAnalysisReport
    tree: str | None = None
