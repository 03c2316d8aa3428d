"""Type Extractor：取得 struct 的欄位資訊。"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from tree_sitter import Node

from runner.go_packages import (
    FileScope,
    GoWorkspace,
    is_builtin_type,
    iter_struct_fields,
    node_text,
    strip_type,
)
from shared.wire_errors import NotAStructError, TypeNotFoundError
from shared.wire_types import FieldInfo, StructFieldsInfo


@dataclass
class GoStructExtractor:
    """以 ``GoWorkspace`` 為資料來源的 type extractor。

    Args:
        workspace: 已指定 work_dir 的 Go workspace。
    """

    workspace: GoWorkspace

    def extract_struct_fields(self, location: str, type_name: str) -> StructFieldsInfo:
        """取得 struct 的欄位資訊。

        Args:
            location: package path（空字串代表 work_dir 的 package）。
            type_name: struct 名稱。

        Returns:
            `StructFieldsInfo`。

        Raises:
            PackageLoadError: 找不到 package 或 package 有錯誤。
            TypeNotFoundError: 型別不存在。
            NotAStructError: 型別不是 struct。
        """
        package = self.workspace.package(location)
        decl = package.types.get(type_name)
        if decl is None:
            raise TypeNotFoundError(
                f"struct {type_name} not found in package {location or package.import_path}"
            )

        node, scope, _ = self.workspace.unalias(decl.node, decl.scope)
        target = self.workspace.named_target(node, scope)
        if target is not None:
            resolved = self.workspace.underlying(*target)
            if resolved is not None:
                node, scope = resolved
        if node.type != "struct_type":
            raise NotAStructError(f"{type_name} is not a struct type")

        fields: list[FieldInfo] = []
        for names, type_node, embedded_pointer in iter_struct_fields(node):
            if names:
                for name in names:
                    fields.append(self._field_info(name, type_node, scope, False))
            else:
                fields.append(
                    self._field_info(
                        _embedded_name(type_node), type_node, scope, embedded_pointer
                    )
                )
        return StructFieldsInfo(
            struct_name=type_name,
            package_path=package.import_path,
            fields=fields,
        )

    def _field_info(
        self, name: str, type_node: Node, scope: FileScope, embedded_pointer: bool
    ) -> FieldInfo:
        node, scope, depth = self.workspace.unalias(type_node, scope)
        is_pointer = embedded_pointer or depth > 0
        target = self.workspace.named_target(node, scope)
        if target is not None:
            package_path, type_name = target
            return FieldInfo(
                name=name,
                type_name=type_name,
                package_path=package_path,
                is_pointer=is_pointer,
                is_interface=self.workspace.is_interface(package_path, type_name),
            )

        text = node_text(node)
        if node.type == "type_identifier" and is_builtin_type(text):
            return FieldInfo(
                name=name,
                type_name=text,
                is_pointer=is_pointer,
                is_interface=text in {"error", "any"},
            )
        return FieldInfo(
            name=name,
            type_name=self.workspace.render_type(node, scope),
            is_pointer=is_pointer,
            is_interface=node.type == "interface_type",
        )


def _embedded_name(type_node: Node) -> str:
    node, _ = strip_type(type_node)
    if node.type == "generic_type":
        node = node.child_by_field_name("type") or node
    if node.type == "qualified_type":
        name_node = node.child_by_field_name("name")
        if name_node is not None:
            return node_text(name_node)
    return node_text(node)


def extract_struct_fields(
    work_dir: Path | str, package_path: str, struct_name: str
) -> StructFieldsInfo:
    """單次呼叫用的便利函式（每次都重新載入 workspace）。

    Args:
        work_dir: package 解析的基準目錄。
        package_path: package path（空字串代表 work_dir）。
        struct_name: struct 名稱。

    Returns:
        `StructFieldsInfo`。
    """
    extractor = GoStructExtractor(GoWorkspace(work_dir))
    return extractor.extract_struct_fields(package_path, struct_name)
