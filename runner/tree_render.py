"""把 dependency tree 輸出為縮排文字。

輸出格式::

    Handler (Package: example.com/app/handler)
      [Init] NewHandler (Package: example.com/app/handler)
    >svc -> service.Service ->
      UserService (Package: example.com/app/service)
      >repo -> *Repository ->
      ...

已在目前路徑上出現過的型別以 ``(cycle)`` 標記；同一個 root 內已展開過的共用型別
以 ``(see above)`` 標記。兩者都不再展開。
"""

from __future__ import annotations

from typing import Sequence

from shared.resolution_types import (
    ConcreteField,
    InterfaceField,
    ResolvedTo,
    ResolvedType,
    SkippedWithReason,
)

INDENT = "  "


def render_tree(roots: Sequence[ResolvedType]) -> str:
    """把多個 root 的 dependency tree 轉為文字。

    Args:
        roots: ``resolve_roots`` 的結果。

    Returns:
        以換行分隔的文字（結尾含換行）。
    """
    lines: list[str] = []
    for root in roots:
        _render_type(root, 0, [], set(), lines)
    return "".join(f"{line}\n" for line in lines)


def _render_type(
    resolved: ResolvedType,
    depth: int,
    ancestors: list[ResolvedType],
    rendered: set[int],
    lines: list[str],
) -> None:
    prefix = INDENT * depth
    if resolved.skipped:
        lines.append(f"{prefix}[SKIPPED] {resolved.name}: {resolved.skip_reason}")
        return

    header = f"{prefix}{resolved.name} (Package: {resolved.location})"
    if any(resolved is ancestor for ancestor in ancestors):
        lines.append(f"{header} (cycle)")
        return
    if id(resolved) in rendered:
        lines.append(f"{header} (see above)")
        return
    rendered.add(id(resolved))
    lines.append(header)

    for provider in resolved.providers:
        lines.append(f"{prefix}{INDENT}[Init] {provider.name} (Package: {provider.package_path})")

    ancestors.append(resolved)
    for node in resolved.fields:
        pointer = "*" if node.is_pointer else ""
        if isinstance(node, InterfaceField):
            type_text = f"{prefix}>{node.field_name} -> {pointer}{node.interface_name}"
            if isinstance(node.resolution, SkippedWithReason):
                lines.append(f"{type_text} -> [SKIPPED] {node.resolution.reason}")
            elif isinstance(node.resolution, ResolvedTo):
                lines.append(f"{type_text} ->")
                _render_type(node.resolution.resolved_type, depth + 1, ancestors, rendered, lines)
            else:
                lines.append(type_text)
        elif isinstance(node, ConcreteField):
            lines.append(f"{prefix}>{node.field_name} ->")
            _render_type(node.resolved_type, depth + 1, ancestors, rendered, lines)
        else:
            lines.append(f"{prefix}>{node.field_name} -> {pointer}{node.type_name}")
    ancestors.pop()
