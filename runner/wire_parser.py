"""Root Discoverer：解析 wire injector 檔案。

找出所有呼叫 ``wire.Build(...)`` 的 top-level function，回傳其 root 型別。
``error`` 與 cleanup ``func()`` 回傳值不視為 root。
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

from tree_sitter import Node

from runner.go_packages import FileScope, GoWorkspace, is_builtin_type, node_text
from shared.wire_errors import PackageLoadError, WireParseError
from shared.wire_types import RootTypeRef, WireFunction

logger = logging.getLogger(__name__)

WIRE_IMPORT_PATH = "github.com/google/wire"


def parse_wire_file(
    wire_file_path: Path | str, workspace: GoWorkspace | None = None
) -> list[WireFunction]:
    """解析 wire 檔案。

    Args:
        wire_file_path: wire.go 路徑。
        workspace: 用於解析 import 的 workspace（None 則以檔案所在目錄建立）。

    Returns:
        依原始碼順序排列的 `WireFunction`。

    Raises:
        WireParseError: 檔案不存在、語法錯誤或缺少 package clause。
    """
    path = Path(wire_file_path).expanduser()
    if not path.is_file():
        raise WireParseError(f"wire file not found: {path}")
    if workspace is None:
        workspace = GoWorkspace(path.parent)

    try:
        go_file = workspace.parse_file(path)
        if not go_file.package_name:
            raise WireParseError(f"missing package clause: {path}")
        if go_file.has_error:
            raise WireParseError(f"syntax error in wire file: {path}")
        scope = workspace.file_scope(go_file)
    except (OSError, PackageLoadError) as exc:
        raise WireParseError(f"failed to parse wire file: {exc}") from exc

    wire_aliases = {
        alias for alias, import_path in scope.imports.items()
        if import_path == WIRE_IMPORT_PATH
    }
    if not wire_aliases:
        wire_aliases = {"wire"}

    functions: list[WireFunction] = []
    for child in go_file.tree.root_node.named_children:
        if child.type != "function_declaration":
            continue
        body = child.child_by_field_name("body")
        name_node = child.child_by_field_name("name")
        if body is None or name_node is None:
            continue
        build_calls = list(_iter_build_calls(body, wire_aliases))
        if not build_calls:
            continue
        build_args: list[str] = []
        for call in build_calls:
            arguments = call.child_by_field_name("arguments")
            if arguments is None:
                continue
            build_args.extend(
                " ".join(node_text(arg).split())
                for arg in arguments.named_children
                if arg.type != "comment"
            )
        functions.append(
            WireFunction(
                name=node_text(name_node),
                return_types=_root_types(
                    workspace, child.child_by_field_name("result"), scope
                ),
                build_args=build_args,
            )
        )
    logger.info("Found %d injector(s) in %s", len(functions), path)
    return functions


def _iter_build_calls(node: Node, wire_aliases: set[str]) -> Iterator[Node]:
    if node.type == "call_expression":
        function = node.child_by_field_name("function")
        if function is not None and function.type == "selector_expression":
            operand = function.child_by_field_name("operand")
            field = function.child_by_field_name("field")
            if (
                operand is not None
                and field is not None
                and node_text(operand) in wire_aliases
                and node_text(field) == "Build"
            ):
                yield node
    for child in node.named_children:
        yield from _iter_build_calls(child, wire_aliases)


def _root_types(
    workspace: GoWorkspace, result: Node | None, scope: FileScope
) -> list[RootTypeRef]:
    roots: list[RootTypeRef] = []
    for type_node in workspace.result_types(result):
        node, node_scope, depth = workspace.unalias(type_node, scope)
        if node.type == "function_type":
            continue
        target = workspace.named_target(node, node_scope)
        if target is None:
            text = node_text(node)
            if is_builtin_type(text):
                continue
            logger.warning("Skipping unnamed injector result type: %s", text)
            continue
        package_path, name = target
        roots.append(
            RootTypeRef(name=name, location=package_path, is_pointer=depth > 0)
        )
    return roots
