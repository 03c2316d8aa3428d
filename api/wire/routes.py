from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from api.wire.deps import WireAnalysisService, get_wire_service
from api.wire.schemas import AnalyzeRequest, AnalyzeResponse, ResolveRequest
from shared.wire_errors import WireParseError

router = APIRouter(prefix="/wire", tags=["wire"])


@router.post("/analyze", response_model=AnalyzeResponse)
def analyze(
    payload: AnalyzeRequest,
    service: WireAnalysisService = Depends(get_wire_service),
) -> AnalyzeResponse:
    """解析 wire 檔並回傳 dependency tree。

    Args:
        payload: `AnalyzeRequest`。
        service: DI 注入的 `WireAnalysisService`。

    Returns:
        `AnalyzeResponse`。
    """
    try:
        report, tree = service.analyze(
            work_dir=payload.work_dir,
            wire_file=payload.wire_file,
            search_pattern=payload.search_pattern,
        )
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except WireParseError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return AnalyzeResponse(
        report=report, tree=tree if payload.format == "tree" else None
    )


@router.post("/resolve", response_model=AnalyzeResponse)
def resolve(
    payload: ResolveRequest,
    service: WireAnalysisService = Depends(get_wire_service),
) -> AnalyzeResponse:
    """不經 wire 檔，直接解析指定的 root 型別。"""
    try:
        report, tree = service.resolve(
            work_dir=payload.work_dir,
            roots=payload.roots,
            search_pattern=payload.search_pattern,
        )
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return AnalyzeResponse(
        report=report, tree=tree if payload.format == "tree" else None
    )
