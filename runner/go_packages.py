"""Go package loader：以 tree-sitter 解析 module 內所有 package。

提供 collaborators（struct extractor / implementation finder / wire parser）
共用的宣告索引：

- ``GoWorkspace``：定位 go.mod、走訪 .go 檔、解析一次並快取。
- 型別查詢（alias 展開、underlying type、canonical 型別字串）。
- method set 計算（含 embedded field 的 promoted methods）。
- package pattern 比對（``./...``、``import/path/...``）。
"""

from __future__ import annotations

import logging
import os
import posixpath
import re
import shutil
import subprocess
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Iterator

import pathspec
import tree_sitter_go
from tree_sitter import Language, Node, Parser, Tree

from shared.wire_errors import PackageLoadError

logger = logging.getLogger(__name__)

GO_BUILTIN_TYPES = frozenset(
    {
        "any",
        "bool",
        "byte",
        "comparable",
        "complex64",
        "complex128",
        "error",
        "float32",
        "float64",
        "int",
        "int8",
        "int16",
        "int32",
        "int64",
        "rune",
        "string",
        "uint",
        "uint8",
        "uint16",
        "uint32",
        "uint64",
        "uintptr",
    }
)

# Go 本身會略過 "." 與 "_" 開頭的目錄以及 testdata
DEFAULT_IGNORE_PATTERNS = [
    ".*/",
    "_*/",
    "testdata/",
    "vendor/",
    "node_modules/",
    "*_test.go",
]

MODULE_RE = re.compile(r"^\s*module\s+\"?([^\s\"]+)\"?", re.MULTILINE)
BUILD_CONSTRAINT_RE = re.compile(r"^//go:build\s+(.+)$")
VERSION_SUFFIX_RE = re.compile(r"^v\d+$")

_MAX_TYPE_DEPTH = 32

_PARSER: Parser | None = None


def is_builtin_type(type_name: str) -> bool:
    """判斷是否為 Go builtin 型別名稱。"""
    return type_name in GO_BUILTIN_TYPES


def _build_parser() -> Parser:
    global _PARSER
    if _PARSER is None:
        parser = Parser()
        parser.language = Language(tree_sitter_go.language())
        _PARSER = parser
    return _PARSER


def parse_go_source(source: bytes) -> Tree:
    """以 tree-sitter Go grammar 解析原始碼。"""
    return _build_parser().parse(source)


def node_text(node: Node) -> str:
    return node.text.decode("utf-8", errors="replace")


def strip_type(node: Node) -> tuple[Node, int]:
    """剝除 parenthesized / pointer 型別。

    Returns:
        (內層型別 node, pointer 層數)。
    """
    depth = 0
    while node.type in {"pointer_type", "parenthesized_type"}:
        if node.type == "pointer_type":
            depth += 1
        inner = [child for child in node.named_children if child.type != "comment"]
        if not inner:
            break
        node = inner[0]
    return node, depth


def requires_wireinject(source: bytes) -> bool:
    """檔案的 //go:build constraint 是否要求 wireinject tag。"""
    for raw_line in source.decode("utf-8", errors="ignore").splitlines():
        line = raw_line.strip()
        if not line:
            continue
        if line.startswith("package "):
            return False
        match = BUILD_CONSTRAINT_RE.match(line)
        if match:
            expr = match.group(1)
            return bool(re.search(r"(?<![!\w])wireinject\b", expr))
    return False


def default_package_name(import_path: str) -> str:
    """外部 package 的預設名稱（最後一段，略過 /vN 與 .vN）。"""
    parts = [part for part in import_path.split("/") if part]
    if not parts:
        return import_path
    name = parts[-1]
    if VERSION_SUFFIX_RE.match(name) and len(parts) > 1:
        name = parts[-2]
    name = re.sub(r"\.v\d+$", "", name)
    return name.replace("-", "_").replace(".", "_")


def iter_struct_fields(struct_node: Node) -> Iterator[tuple[list[str], Node, bool]]:
    """走訪 struct_type 的 field_declaration。

    Yields:
        (欄位名稱列表（embedded 為空）, 型別 node, embedded 是否以 ``*`` 宣告)。
    """
    for child in struct_node.named_children:
        if child.type != "field_declaration_list":
            continue
        for decl in child.named_children:
            if decl.type != "field_declaration":
                continue
            type_node = decl.child_by_field_name("type")
            if type_node is None:
                continue
            names = [node_text(n) for n in decl.children_by_field_name("name")]
            embedded_pointer = not names and any(c.type == "*" for c in decl.children)
            yield names, type_node, embedded_pointer


@dataclass(frozen=True)
class FileScope:
    """型別運算所需的檔案 context。"""

    package_path: str
    imports: dict[str, str] = field(default_factory=dict, hash=False, compare=False)


@dataclass
class GoTypeDecl:
    name: str
    node: Node
    scope: FileScope
    is_alias: bool = False
    is_generic: bool = False


@dataclass
class GoMethod:
    name: str
    receiver: str
    pointer_receiver: bool
    signature: str


@dataclass
class GoFuncDecl:
    name: str
    result: Node | None
    scope: FileScope


@dataclass
class GoFile:
    path: Path
    package_name: str
    raw_imports: list[tuple[str | None, str]]
    tree: Tree
    has_error: bool
    wireinject: bool
    scope: FileScope | None = None


@dataclass
class GoPackage:
    """同一目錄下（排除 wireinject 檔）的 Go package。"""

    import_path: str
    dir: Path
    name: str = ""
    files: list[GoFile] = field(default_factory=list)
    types: dict[str, GoTypeDecl] = field(default_factory=dict)
    methods: dict[str, list[GoMethod]] = field(default_factory=dict)
    functions: list[GoFuncDecl] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


class GoWorkspace:
    """以 work_dir 為基準載入 Go module。

    module 之外的 package（標準函式庫、vendor、module cache 內的相依套件）
    在第一次被參照時才載入，只用於型別查詢。

    Args:
        work_dir: 分析的工作目錄（位於 module 之內）。
        goroot: Go 安裝目錄（None 則讀取 ``GOROOT`` / ``go env``）。
        mod_cache: module cache 目錄（None 則讀取 ``GOMODCACHE`` / ``go env``）。
    """

    def __init__(
        self,
        work_dir: Path | str,
        goroot: Path | str | None = None,
        mod_cache: Path | str | None = None,
    ) -> None:
        self.work_dir = Path(work_dir).expanduser().resolve()
        self.module_root, self.module_path = _find_module(self.work_dir)
        go_mod = self.module_root / "go.mod"
        self.requirements = _read_requirements(go_mod) if go_mod.is_file() else {}
        self._goroot = Path(goroot) if goroot else None
        self._mod_cache = Path(mod_cache) if mod_cache else None
        self._packages: dict[str, GoPackage] | None = None
        self._external: dict[str, GoPackage | None] = {}

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @property
    def packages(self) -> dict[str, GoPackage]:
        if self._packages is None:
            self._packages = self._load()
        return self._packages

    def _load(self) -> dict[str, GoPackage]:
        if not self.work_dir.is_dir():
            raise PackageLoadError(f"work dir not found: {self.work_dir}")
        spec = self._load_gitignore()
        packages: dict[str, GoPackage] = {}
        for path in sorted(self.module_root.rglob("*.go")):
            rel_path = path.relative_to(self.module_root).as_posix()
            if spec.match_file(rel_path):
                continue
            go_file = self.parse_file(path)
            if go_file.wireinject:
                continue
            import_path = self.import_path_for_dir(path.parent)
            package = packages.get(import_path)
            if package is None:
                package = GoPackage(import_path=import_path, dir=path.parent)
                packages[import_path] = package
            if not package.name:
                package.name = go_file.package_name
            package.files.append(go_file)
            if go_file.has_error:
                package.errors.append(f"{rel_path}: syntax error")

        self._packages = packages
        names = {path: pkg.name for path, pkg in packages.items()}
        for package in packages.values():
            for go_file in package.files:
                go_file.scope = FileScope(
                    package_path=package.import_path,
                    imports=self._import_aliases(go_file.raw_imports, names),
                )
                self._index_types(package, go_file)
        for package in packages.values():
            for go_file in package.files:
                self._index_members(package, go_file)
        logger.debug(
            "Loaded %d Go packages under %s", len(packages), self.module_root
        )
        return packages

    def _load_gitignore(self) -> pathspec.PathSpec:
        patterns = list(DEFAULT_IGNORE_PATTERNS)
        gitignore_path = self.module_root / ".gitignore"
        if gitignore_path.exists():
            patterns.extend(gitignore_path.read_text(encoding="utf-8").splitlines())
        return pathspec.PathSpec.from_lines("gitwildmatch", patterns)

    def parse_file(self, path: Path) -> GoFile:
        """解析單一 .go 檔（不建立型別索引）。"""
        source = path.read_bytes()
        tree = parse_go_source(source)
        root = tree.root_node
        package_name = ""
        raw_imports: list[tuple[str | None, str]] = []
        for child in root.named_children:
            if child.type == "package_clause":
                idents = [c for c in child.named_children if c.type != "comment"]
                if idents:
                    package_name = node_text(idents[0])
            elif child.type == "import_declaration":
                raw_imports.extend(_iter_imports(child))
        return GoFile(
            path=path,
            package_name=package_name,
            raw_imports=raw_imports,
            tree=tree,
            has_error=root.has_error,
            wireinject=requires_wireinject(source),
        )

    def file_scope(self, go_file: GoFile) -> FileScope:
        """為（可能不屬於 package 索引的）檔案建立 FileScope。"""
        names = {path: pkg.name for path, pkg in self.packages.items()}
        return FileScope(
            package_path=self.import_path_for_dir(go_file.path.parent),
            imports=self._import_aliases(go_file.raw_imports, names),
        )

    def _import_aliases(
        self, raw_imports: list[tuple[str | None, str]], names: dict[str, str]
    ) -> dict[str, str]:
        aliases: dict[str, str] = {}
        for alias, path in raw_imports:
            if alias in {"_", "."}:
                continue
            name = alias or names.get(path) or default_package_name(path)
            aliases[name] = path
        return aliases

    def _index_types(self, package: GoPackage, go_file: GoFile) -> None:
        scope = go_file.scope
        assert scope is not None
        for child in go_file.tree.root_node.named_children:
            if child.type == "type_declaration":
                for spec in child.named_children:
                    if spec.type not in {"type_spec", "type_alias"}:
                        continue
                    name_node = spec.child_by_field_name("name")
                    type_node = spec.child_by_field_name("type")
                    if name_node is None or type_node is None:
                        continue
                    name = node_text(name_node)
                    package.types.setdefault(
                        name,
                        GoTypeDecl(
                            name=name,
                            node=type_node,
                            scope=scope,
                            is_alias=spec.type == "type_alias",
                            is_generic=spec.child_by_field_name("type_parameters")
                            is not None,
                        ),
                    )

    def _index_members(self, package: GoPackage, go_file: GoFile) -> None:
        # 方法簽名的 canonical 字串需要查詢型別，須在所有型別索引完成後執行
        scope = go_file.scope
        assert scope is not None
        for child in go_file.tree.root_node.named_children:
            if child.type == "method_declaration":
                method = self._method_from_node(child, scope)
                if method is not None:
                    package.methods.setdefault(method.receiver, []).append(method)
            elif child.type == "function_declaration":
                name_node = child.child_by_field_name("name")
                if name_node is None:
                    continue
                package.functions.append(
                    GoFuncDecl(
                        name=node_text(name_node),
                        result=child.child_by_field_name("result"),
                        scope=scope,
                    )
                )

    def _method_from_node(self, node: Node, scope: FileScope) -> GoMethod | None:
        receiver = node.child_by_field_name("receiver")
        name_node = node.child_by_field_name("name")
        if receiver is None or name_node is None:
            return None
        params = [
            c for c in receiver.named_children if c.type == "parameter_declaration"
        ]
        if not params:
            return None
        recv_type = params[0].child_by_field_name("type")
        if recv_type is None:
            return None
        base, depth = strip_type(recv_type)
        if base.type == "generic_type":
            base = base.child_by_field_name("type") or base
        if base.type != "type_identifier":
            return None
        return GoMethod(
            name=node_text(name_node),
            receiver=node_text(base),
            pointer_receiver=depth > 0,
            signature=self.signature(
                node.child_by_field_name("parameters"),
                node.child_by_field_name("result"),
                scope,
            ),
        )

    # ------------------------------------------------------------------
    # Package lookup
    # ------------------------------------------------------------------

    def import_path_for_dir(self, directory: Path) -> str:
        """目錄對應的 import path（無 go.mod 時為相對路徑）。"""
        try:
            rel = directory.resolve().relative_to(self.module_root).as_posix()
        except ValueError:
            return directory.resolve().as_posix()
        if rel == ".":
            return self.module_path
        if not self.module_path:
            return rel
        return f"{self.module_path}/{rel}"

    def find_package(self, location: str) -> GoPackage | None:
        """依 location 尋找 package。

        空字串代表 work_dir 所在的 package；``./x`` 形式為相對 work_dir。
        """
        if not location:
            return self.packages.get(self.import_path_for_dir(self.work_dir))
        if location == "." or location.startswith(("./", "../")):
            return self.packages.get(
                self.import_path_for_dir(self.work_dir / location)
            )
        return self.packages.get(location) or self.external_package(location)

    def package(self, location: str) -> GoPackage:
        """取得無錯誤的 package。

        Raises:
            PackageLoadError: 找不到 package 或 package 含語法錯誤。
        """
        package = self.find_package(location)
        if package is None:
            raise PackageLoadError(f"no packages found for path: {location}")
        if package.errors:
            raise PackageLoadError(f"package has errors: {package.errors}")
        return package

    def resolve_location(self, location: str) -> str:
        """把空字串或相對 location 換成 import path。"""
        package = self.find_package(location)
        if package is not None:
            return package.import_path
        return location

    def match_package_pattern(self, pattern: str, import_path: str) -> bool:
        """以 go 的 package pattern 語意比對 import path。"""
        pattern = pattern.strip()
        if pattern in {"", "all"}:
            return True
        if pattern == "." or pattern.startswith(("./", "../")):
            base = self.import_path_for_dir(self.work_dir)
            joined = posixpath.normpath(posixpath.join(base or ".", pattern))
            pattern = "" if joined == "." else joined
        if pattern.endswith("/..."):
            head = re.escape(pattern[:-4]).replace(r"\.\.\.", ".*")
            regex = f"^{head}(/.*)?$"
        else:
            regex = "^" + re.escape(pattern).replace(r"\.\.\.", ".*") + "$"
        return re.match(regex, import_path) is not None

    def packages_matching(self, pattern: str) -> list[GoPackage]:
        return [
            self.packages[path]
            for path in sorted(self.packages)
            if self.match_package_pattern(pattern, path)
        ]

    def external_package(self, import_path: str) -> GoPackage | None:
        """載入 module 之外的 package（找不到原始碼時回傳 None，結果會快取）。"""
        if not import_path or import_path.startswith(".") or import_path in self.packages:
            return None
        if import_path not in self._external:
            directory = self._external_dir(import_path)
            self._external[import_path] = (
                self._load_external(import_path, directory) if directory else None
            )
        return self._external[import_path]

    def _external_dir(self, import_path: str) -> Path | None:
        vendored = self.module_root / "vendor" / import_path
        if vendored.is_dir():
            return vendored

        if "." not in import_path.split("/", 1)[0]:
            goroot = self._goroot or _optional_path(go_env("GOROOT"))
            candidate = goroot / "src" / import_path if goroot else None
        else:
            module = _match_requirement(import_path, self.requirements)
            mod_cache = self._mod_cache or default_mod_cache()
            if module is None or mod_cache is None:
                return None
            version = self.requirements[module]
            rest = import_path[len(module):].lstrip("/")
            candidate = (
                mod_cache
                / f"{escape_module_path(module)}@{escape_module_path(version)}"
                / rest
            )
        if candidate is None or not candidate.is_dir():
            logger.debug("No source found for package %s", import_path)
            return None
        return candidate

    def _load_external(self, import_path: str, directory: Path) -> GoPackage | None:
        package = GoPackage(import_path=import_path, dir=directory)
        names = {path: pkg.name for path, pkg in self.packages.items()}
        for path in sorted(directory.glob("*.go")):
            if path.name.endswith("_test.go"):
                continue
            go_file = self.parse_file(path)
            # 略過 //go:build ignore 的產生器（package main）與語法錯誤的檔案
            if go_file.has_error or go_file.package_name in {"", "main"}:
                continue
            if package.name and go_file.package_name != package.name:
                continue
            package.name = go_file.package_name
            go_file.scope = FileScope(
                package_path=import_path,
                imports=self._import_aliases(go_file.raw_imports, names),
            )
            package.files.append(go_file)
            self._index_types(package, go_file)
        if not package.files:
            return None
        self._external[import_path] = package
        for go_file in package.files:
            self._index_members(package, go_file)
        logger.debug("Loaded external package %s from %s", import_path, directory)
        return package

    # ------------------------------------------------------------------
    # Type queries
    # ------------------------------------------------------------------

    def lookup_type(self, package_path: str, name: str) -> GoTypeDecl | None:
        package = self.packages.get(package_path) or self.external_package(package_path)
        if package is None:
            return None
        return package.types.get(name)

    def named_target(self, node: Node, scope: FileScope) -> tuple[str, str] | None:
        """型別 node 若為 named type，回傳 (package_path, name)。

        builtin 型別（未被同 package 宣告覆蓋）回傳 None。
        """
        node = _strip_parens(node)
        if node.type == "type_identifier":
            name = node_text(node)
            if is_builtin_type(name) and self.lookup_type(scope.package_path, name) is None:
                return None
            return scope.package_path, name
        if node.type == "qualified_type":
            pkg_node = node.child_by_field_name("package")
            name_node = node.child_by_field_name("name")
            if pkg_node is None or name_node is None:
                return None
            alias = node_text(pkg_node)
            return scope.imports.get(alias, alias), node_text(name_node)
        if node.type == "generic_type":
            base = node.child_by_field_name("type")
            if base is not None:
                return self.named_target(base, scope)
        return None

    def unalias(self, node: Node, scope: FileScope) -> tuple[Node, FileScope, int]:
        """展開 alias 與 pointer。

        Returns:
            (最終型別 node, 其 scope, 累計 pointer 層數)。
        """
        depth = 0
        for _ in range(_MAX_TYPE_DEPTH):
            node, pointers = strip_type(node)
            depth += pointers
            target = self.named_target(node, scope)
            if target is None:
                break
            decl = self.lookup_type(*target)
            if decl is None or not decl.is_alias:
                break
            node, scope = decl.node, decl.scope
        return node, scope, depth

    def underlying(self, package_path: str, name: str) -> tuple[Node, FileScope] | None:
        """沿 defined type 鏈取得 underlying 型別 node。

        外部或 builtin 型別回傳 None。
        """
        seen: set[tuple[str, str]] = set()
        while (package_path, name) not in seen:
            seen.add((package_path, name))
            decl = self.lookup_type(package_path, name)
            if decl is None:
                return None
            node, scope, _ = self.unalias(decl.node, decl.scope)
            target = self.named_target(node, scope)
            if target is None:
                return node, scope
            package_path, name = target
        return None

    def is_interface(self, package_path: str, name: str) -> bool:
        resolved = self.underlying(package_path, name)
        return resolved is not None and resolved[0].type == "interface_type"

    def canonical_named(self, package_path: str, name: str) -> str:
        decl = self.lookup_type(package_path, name)
        if decl is not None and decl.is_alias:
            return self.render_type(decl.node, decl.scope)
        if not package_path:
            return name
        return f"{package_path}.{name}"

    def render_type(self, node: Node, scope: FileScope, _depth: int = 0) -> str:
        """把型別 node 轉成與 import alias 無關的 canonical 字串。"""
        if _depth > _MAX_TYPE_DEPTH:
            return " ".join(node_text(node).split())
        depth = _depth + 1
        kind = node.type
        if kind in {"type_identifier", "qualified_type"}:
            target = self.named_target(node, scope)
            if target is None:
                return node_text(node)
            return self.canonical_named(*target)
        if kind == "pointer_type":
            inner, pointers = strip_type(node)
            return "*" * pointers + self.render_type(inner, scope, depth)
        if kind == "parenthesized_type":
            return self.render_type(_strip_parens(node), scope, depth)
        if kind == "slice_type":
            element = node.child_by_field_name("element")
            return "[]" + self._render_optional(element, scope, depth)
        if kind == "array_type":
            length = node.child_by_field_name("length")
            element = node.child_by_field_name("element")
            size = node_text(length) if length is not None else ""
            return f"[{size}]" + self._render_optional(element, scope, depth)
        if kind == "map_type":
            key = self._render_optional(node.child_by_field_name("key"), scope, depth)
            value = self._render_optional(
                node.child_by_field_name("value"), scope, depth
            )
            return f"map[{key}]{value}"
        if kind == "channel_type":
            value = node.child_by_field_name("value")
            if value is None:
                return " ".join(node_text(node).split())
            prefix = node.text[: value.start_byte - node.start_byte]
            direction = "".join(prefix.decode("utf-8", errors="ignore").split())
            return f"{direction} {self.render_type(value, scope, depth)}"
        if kind == "function_type":
            return "func" + self.signature(
                node.child_by_field_name("parameters"),
                node.child_by_field_name("result"),
                scope,
            )
        if kind == "generic_type":
            base = node.child_by_field_name("type")
            args = node.child_by_field_name("type_arguments")
            rendered_args = []
            if args is not None:
                rendered_args = [
                    self.render_type(arg, scope, depth)
                    for arg in args.named_children
                    if arg.type != "comment"
                ]
            head = self._render_optional(base, scope, depth)
            return f"{head}[{','.join(rendered_args)}]"
        if kind == "type_elem":
            return "|".join(
                self.render_type(child, scope, depth)
                for child in node.named_children
                if child.type != "comment"
            )
        return " ".join(node_text(node).split())

    def _render_optional(self, node: Node | None, scope: FileScope, depth: int) -> str:
        if node is None:
            return ""
        return self.render_type(node, scope, depth)

    def signature(
        self, params: Node | None, result: Node | None, scope: FileScope
    ) -> str:
        """方法/函式簽名的 canonical 字串：``(params)(results)``。"""
        rendered_params = self._render_params(params, scope)
        if result is None:
            rendered_results: list[str] = []
        elif result.type == "parameter_list":
            rendered_results = self._render_params(result, scope)
        else:
            rendered_results = [self.render_type(result, scope)]
        return f"({','.join(rendered_params)})({','.join(rendered_results)})"

    def result_types(self, result: Node | None) -> list[Node]:
        """函式 result 的型別 node（依名稱數量展開）。"""
        if result is None:
            return []
        if result.type != "parameter_list":
            return [result]
        types: list[Node] = []
        for child in result.named_children:
            type_node = child.child_by_field_name("type")
            if type_node is None:
                continue
            count = max(1, len(child.children_by_field_name("name")))
            types.extend([type_node] * count)
        return types

    def _render_params(self, params: Node | None, scope: FileScope) -> list[str]:
        if params is None:
            return []
        rendered: list[str] = []
        for child in params.named_children:
            type_node = child.child_by_field_name("type")
            if type_node is None:
                continue
            if child.type == "variadic_parameter_declaration":
                rendered.append("..." + self.render_type(type_node, scope))
            elif child.type == "parameter_declaration":
                count = max(1, len(child.children_by_field_name("name")))
                rendered.extend([self.render_type(type_node, scope)] * count)
        return rendered

    # ------------------------------------------------------------------
    # Method sets
    # ------------------------------------------------------------------

    def interface_methods(
        self, node: Node, scope: FileScope, _seen: set[tuple[str, str]] | None = None
    ) -> dict[str, str]:
        """interface_type 的方法集合（embedded interface 攤平）。"""
        seen = _seen if _seen is not None else set()
        methods: dict[str, str] = {}
        for child in node.named_children:
            if child.type in {"method_elem", "method_spec"}:
                name_node = child.child_by_field_name("name")
                if name_node is None:
                    continue
                methods[node_text(name_node)] = self.signature(
                    child.child_by_field_name("parameters"),
                    child.child_by_field_name("result"),
                    scope,
                )
                continue
            if child.type in {"type_elem", "constraint_elem", "interface_type_name"}:
                embedded = [c for c in child.named_children if c.type != "comment"]
            elif child.type in {"type_identifier", "qualified_type"}:
                embedded = [child]
            else:
                continue
            for embedded_node in embedded:
                methods.update(self._embedded_interface_methods(embedded_node, scope, seen))
        return methods

    def _embedded_interface_methods(
        self, node: Node, scope: FileScope, seen: set[tuple[str, str]]
    ) -> dict[str, str]:
        if node.type == "interface_type":
            return self.interface_methods(node, scope, seen)
        target = self.named_target(node, scope)
        if target is None or target in seen:
            return {}
        seen.add(target)
        resolved = self.underlying(*target)
        if resolved is None or resolved[0].type != "interface_type":
            return {}
        return self.interface_methods(resolved[0], resolved[1], seen)

    def method_set(
        self,
        package_path: str,
        name: str,
        pointer: bool,
        _seen: frozenset[tuple[str, str]] = frozenset(),
    ) -> dict[str, str]:
        """named type（pointer=True 時為 *T）的方法集合。"""
        key = (package_path, name)
        if key in _seen:
            return {}
        seen = _seen | {key}
        decl = self.lookup_type(package_path, name)
        if decl is None:
            return {}
        if decl.is_alias:
            node, scope, depth = self.unalias(decl.node, decl.scope)
            target = self.named_target(node, scope)
            if target is None:
                return {}
            return self.method_set(*target, pointer or depth > 0, seen)

        methods: dict[str, str] = {}
        resolved = self.underlying(package_path, name)
        if resolved is None:
            return methods
        node, scope = resolved
        if node.type == "struct_type":
            for names, type_node, embedded_pointer in iter_struct_fields(node):
                if names:
                    continue
                methods.update(
                    self._promoted_methods(
                        type_node, scope, pointer or embedded_pointer, seen
                    )
                )
        elif node.type == "interface_type":
            return self.interface_methods(node, scope)

        package = self.packages.get(package_path) or self.external_package(package_path)
        if package is not None:
            for method in package.methods.get(name, []):
                if pointer or not method.pointer_receiver:
                    methods[method.name] = method.signature
        return methods

    def _promoted_methods(
        self,
        type_node: Node,
        scope: FileScope,
        pointer: bool,
        seen: frozenset[tuple[str, str]],
    ) -> dict[str, str]:
        inner, scope, depth = self.unalias(type_node, scope)
        target = self.named_target(inner, scope)
        if target is None:
            return {}
        resolved = self.underlying(*target)
        if resolved is not None and resolved[0].type == "interface_type":
            return self.interface_methods(resolved[0], resolved[1])
        return self.method_set(*target, pointer or depth > 0, seen)

    def iter_named_types(self, packages: Iterable[GoPackage]) -> Iterator[GoTypeDecl]:
        for package in packages:
            yield from package.types.values()


def _strip_parens(node: Node) -> Node:
    while node.type == "parenthesized_type":
        inner = [child for child in node.named_children if child.type != "comment"]
        if not inner:
            break
        node = inner[0]
    return node


def _iter_imports(node: Node) -> Iterator[tuple[str | None, str]]:
    for child in node.named_children:
        if child.type == "import_spec_list":
            yield from _iter_imports(child)
        elif child.type == "import_spec":
            path_node = child.child_by_field_name("path")
            if path_node is None:
                continue
            name_node = child.child_by_field_name("name")
            alias = node_text(name_node) if name_node is not None else None
            yield alias, node_text(path_node).strip("\"`")


def _find_module(work_dir: Path) -> tuple[Path, str]:
    """往上尋找 go.mod。

    Returns:
        (module 根目錄, module path)；找不到時為 (work_dir, "")。
    """
    for candidate in (work_dir, *work_dir.parents):
        go_mod = candidate / "go.mod"
        if go_mod.is_file():
            match = MODULE_RE.search(go_mod.read_text(encoding="utf-8"))
            return candidate, match.group(1) if match else ""
    return work_dir, ""


def _read_requirements(go_mod: Path) -> dict[str, str]:
    """讀取 go.mod 的 require 區段，回傳 {module path: version}。"""
    requirements: dict[str, str] = {}
    in_block = False
    for raw in go_mod.read_text(encoding="utf-8").splitlines():
        line = raw.split("//", 1)[0].strip()
        if not line:
            continue
        if in_block:
            if line == ")":
                in_block = False
                continue
            parts = line.split()
        elif line == "require (":
            in_block = True
            continue
        elif line.startswith("require "):
            parts = line.split()[1:]
        else:
            continue
        if len(parts) >= 2:
            requirements[parts[0].strip('"')] = parts[1]
    return requirements


def _match_requirement(import_path: str, requirements: dict[str, str]) -> str | None:
    # 最長的 module path 優先（巢狀 module）
    matches = [
        module
        for module in requirements
        if import_path == module or import_path.startswith(module + "/")
    ]
    return max(matches, key=len) if matches else None


def escape_module_path(path: str) -> str:
    """module cache 的路徑編碼：大寫字母轉為 ``!`` 加小寫。"""
    return "".join(f"!{ch.lower()}" if ch.isupper() else ch for ch in path)


@lru_cache(maxsize=None)
def _go_env_from_tool(key: str) -> str:
    go = shutil.which("go")
    if go is None:
        return ""
    try:
        completed = subprocess.run(
            [go, "env", key],
            capture_output=True,
            text=True,
            timeout=30,
            check=False,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("go env %s failed: %s", key, exc)
        return ""
    return completed.stdout.strip()


def go_env(key: str) -> str:
    """讀取 Go 環境設定（環境變數優先，其次 ``go env``；都沒有時回傳空字串）。"""
    return os.environ.get(key) or _go_env_from_tool(key)


def _optional_path(value: str) -> Path | None:
    return Path(value) if value else None


def default_mod_cache() -> Path | None:
    mod_cache = go_env("GOMODCACHE")
    if mod_cache:
        return Path(mod_cache)
    gopath = go_env("GOPATH")
    if gopath:
        return Path(gopath.split(os.pathsep)[0]) / "pkg" / "mod"
    return Path.home() / "go" / "pkg" / "mod"
