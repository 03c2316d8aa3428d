"""Report Builder：把 in-memory dependency tree 轉為 ``WireAnalysisReport``。

in-memory 樹可能共用節點或有 cycle，無法直接 ``model_dump``；
這裡改以 arena 形式輸出：每個 ``ResolvedType`` 只出現一次，field 以 type key 參照。
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Sequence

from shared.resolution_types import (
    ConcreteField,
    FieldNode,
    InterfaceField,
    ResolvedTo,
    ResolvedType,
    SkippedWithReason,
)
from shared.wire_types import (
    BindingEntry,
    ConcreteFieldEntry,
    FieldEntry,
    InterfaceFieldEntry,
    PrimitiveFieldEntry,
    RootEntry,
    TypeEntry,
    WireAnalysisReport,
)


def build_report(
    roots: Sequence[ResolvedType],
    injectors: Sequence[str | None] | None = None,
    generated_at: datetime | None = None,
) -> WireAnalysisReport:
    """建立 report document。

    Args:
        roots: ``resolve_roots`` 的結果。
        injectors: 與 roots 對應的 injector 名稱（可省略）。
        generated_at: 產生時間（None 則使用目前 UTC 時間）。

    Returns:
        WireAnalysisReport。
    """
    if injectors is not None and len(injectors) != len(roots):
        raise ValueError("injectors must align with roots")

    types: dict[str, TypeEntry] = {}
    root_entries: list[RootEntry] = []
    for index, root in enumerate(roots):
        _collect(root, types)
        root_entries.append(
            RootEntry(
                type_key=str(root.key),
                injector=injectors[index] if injectors is not None else None,
            )
        )

    return WireAnalysisReport(
        roots=root_entries,
        types=list(types.values()),
        generated_at=generated_at or datetime.now(timezone.utc),
    )


def _collect(root: ResolvedType, types: dict[str, TypeEntry]) -> None:
    # 以 stack 走訪避免深層遞迴；key 已存在即視為已處理（含 cycle）
    stack = [root]
    while stack:
        resolved = stack.pop()
        key = str(resolved.key)
        if key in types:
            continue
        fields: list[FieldEntry] = []
        for node in resolved.fields:
            fields.append(_field_entry(node))
            child = _child_type(node)
            if child is not None:
                stack.append(child)
        types[key] = TypeEntry(
            key=key,
            name=resolved.name,
            location=resolved.location,
            status=resolved.status.value,
            skip_kind=resolved.skip_reason.kind.value if resolved.skip_reason else None,
            skip_reason=resolved.skip_reason.message if resolved.skip_reason else None,
            providers=list(resolved.providers),
            fields=fields,
        )


def _child_type(node: FieldNode) -> ResolvedType | None:
    if isinstance(node, ConcreteField):
        return node.resolved_type
    if isinstance(node, InterfaceField) and isinstance(node.resolution, ResolvedTo):
        return node.resolution.resolved_type
    return None


def _field_entry(node: FieldNode) -> FieldEntry:
    if isinstance(node, ConcreteField):
        return ConcreteFieldEntry(
            name=node.field_name,
            type_key=str(node.resolved_type.key),
            is_pointer=node.is_pointer,
        )
    if isinstance(node, InterfaceField):
        return InterfaceFieldEntry(
            name=node.field_name,
            interface_name=node.interface_name,
            interface_location=node.interface_location,
            is_pointer=node.is_pointer,
            binding=_binding_entry(node),
        )
    return PrimitiveFieldEntry(
        name=node.field_name,
        type_name=node.type_name,
        is_pointer=node.is_pointer,
    )


def _binding_entry(node: InterfaceField) -> BindingEntry:
    resolution = node.resolution
    if isinstance(resolution, ResolvedTo):
        return BindingEntry(
            status="resolved", type_key=str(resolution.resolved_type.key)
        )
    if isinstance(resolution, SkippedWithReason):
        return BindingEntry(
            status="skipped",
            skip_kind=resolution.reason.kind.value,
            skip_reason=resolution.reason.message,
        )
    return BindingEntry(status="unresolved")
