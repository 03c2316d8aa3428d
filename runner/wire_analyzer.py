"""Dependency Graph Resolver。

從 root 型別開始走訪 struct field，建立 dependency tree：

- builtin 型別 → ``PrimitiveField``（不展開）。
- interface → 搜尋實作；唯一實作才遞迴解析，否則記錄 skip reason。
- 其他 named type → 遞迴解析為 ``ConcreteField``。

每次 run 使用一個 ``ResolutionCache``：型別在解析 field 之前就放入 cache，
因此 cyclic type graph 會拿到進行中的同一個節點而不會無限遞迴。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Protocol, Sequence

from runner.go_packages import GoWorkspace, is_builtin_type
from runner.impl_finder import GoImplementationFinder, GoProviderFinder
from runner.struct_extractor import GoStructExtractor
from runner.wire_parser import parse_wire_file
from shared.resolution_types import (
    Binding,
    ConcreteField,
    FieldNode,
    InterfaceField,
    PrimitiveField,
    ResolvedTo,
    ResolvedType,
    SkipKind,
    SkippedWithReason,
    SkipReason,
    TypeKey,
    Unresolved,
)
from shared.wire_errors import WiretraceError
from shared.wire_types import (
    FieldInfo,
    ImplementationRef,
    ProviderInfo,
    RootTypeRef,
    StructFieldsInfo,
)

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_PATTERN = "./..."

# collaborator 可能丟出的錯誤；皆轉為 skip reason
COLLABORATOR_ERRORS = (WiretraceError, OSError)


class TypeExtractor(Protocol):
    def extract_struct_fields(
        self, location: str, type_name: str
    ) -> StructFieldsInfo: ...


class ImplementationFinder(Protocol):
    def find_implementations(
        self, interface_name: str, interface_location: str, search_scope: str
    ) -> list[ImplementationRef]: ...


class ProviderFinder(Protocol):
    def find_providers_returning(
        self, type_name: str, location: str, search_scope: str
    ) -> list[ProviderInfo]: ...


@dataclass(frozen=True)
class AnalyzerConfig:
    """Analyzer 設定。

    Args:
        work_dir: package 解析的基準目錄。
        search_pattern: 搜尋實作與 provider 的 package pattern。
    """

    work_dir: Path
    search_pattern: str = DEFAULT_SEARCH_PATTERN


@dataclass(frozen=True)
class RootResult:
    """單一 root 的解析結果與產生它的 injector。"""

    injector: str | None
    resolved: ResolvedType


class ResolutionCache:
    """單次 run 的 ``TypeKey → ResolvedType`` 對照。

    同一 key 只保留第一次放入的節點（first-writer-wins）。
    非 thread-safe：resolver 以單執行緒深度優先遞迴使用。
    """

    def __init__(self) -> None:
        self._entries: dict[TypeKey, ResolvedType] = {}

    def get(self, key: TypeKey) -> ResolvedType | None:
        return self._entries.get(key)

    def insert(self, key: TypeKey, resolved: ResolvedType) -> ResolvedType:
        return self._entries.setdefault(key, resolved)

    def keys(self) -> Iterator[TypeKey]:
        return iter(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class WireAnalyzer:
    """以 collaborators 建立 dependency tree 的 resolver。

    Args:
        extractor: type extractor。
        implementation_finder: interface 實作搜尋。
        provider_finder: provider 搜尋（可為 None，則不填 providers）。
        search_pattern: 搜尋範圍的 package pattern。
        workspace: 解析 wire 檔所用的 workspace（可為 None）。
    """

    def __init__(
        self,
        extractor: TypeExtractor,
        implementation_finder: ImplementationFinder,
        provider_finder: ProviderFinder | None = None,
        search_pattern: str = DEFAULT_SEARCH_PATTERN,
        workspace: GoWorkspace | None = None,
    ) -> None:
        self.extractor = extractor
        self.implementation_finder = implementation_finder
        self.provider_finder = provider_finder
        self.search_pattern = search_pattern
        self.workspace = workspace

    @classmethod
    def from_config(cls, config: AnalyzerConfig) -> "WireAnalyzer":
        """建立以 tree-sitter Go workspace 為資料來源的 analyzer。"""
        workspace = GoWorkspace(config.work_dir)
        return cls(
            extractor=GoStructExtractor(workspace),
            implementation_finder=GoImplementationFinder(workspace),
            provider_finder=GoProviderFinder(workspace),
            search_pattern=config.search_pattern,
            workspace=workspace,
        )

    def analyze_wire_file(self, wire_file_path: Path | str) -> list[RootResult]:
        """解析 wire 檔並對每個 injector 回傳型別建立 dependency tree。

        Args:
            wire_file_path: wire.go 路徑。

        Returns:
            依 injector 與回傳值順序排列的 `RootResult`。

        Raises:
            WireParseError: wire 檔無法解析（整個 run 中止）。
        """
        functions = parse_wire_file(wire_file_path, self.workspace)
        injectors: list[str] = []
        refs: list[RootTypeRef] = []
        for function in functions:
            for ref in function.return_types:
                injectors.append(function.name)
                refs.append(ref)
        resolved = self.resolve_roots(refs)
        return [
            RootResult(injector=injector, resolved=root)
            for injector, root in zip(injectors, resolved)
        ]

    def resolve_roots(self, roots: Iterable[RootTypeRef]) -> list[ResolvedType]:
        """對每個 root 建立 dependency tree（共用同一個 cache）。

        單一 root 失敗時以 SKIPPED 節點表示，其餘 root 繼續解析。
        """
        cache = ResolutionCache()
        results: list[ResolvedType] = []
        for ref in roots:
            resolved = self._resolve(TypeKey(ref.location, ref.name), cache)
            if resolved.skipped:
                # SKIPPED 節點不進 cache，可直接換成帶 root 前綴的新節點
                reason = resolved.skip_reason
                resolved = ResolvedType.skipped_type(
                    ref.location,
                    ref.name,
                    SkipReason(reason.kind, f"failed to analyze: {reason.message}"),
                )
                logger.warning(
                    "Root %s skipped: %s", resolved.key, resolved.skip_reason
                )
            results.append(resolved)
        return results

    def resolve(
        self, location: str, name: str, cache: ResolutionCache | None = None
    ) -> ResolvedType:
        """解析單一型別。

        Args:
            location: package path（空字串代表 work_dir 的 package）。
            name: 型別名稱。
            cache: 要沿用的 cache（None 則開啟新的 run）。

        Returns:
            `ResolvedType`（失敗時為 SKIPPED）。
        """
        if cache is None:
            cache = ResolutionCache()
        return self._resolve(TypeKey(location, name), cache)

    def _resolve(self, key: TypeKey, cache: ResolutionCache) -> ResolvedType:
        cached = cache.get(key)
        if cached is not None:
            logger.debug("Cache hit for %s", key)
            return cached

        try:
            info = self.extractor.extract_struct_fields(key.location, key.name)
        except COLLABORATOR_ERRORS as exc:
            # 失敗不寫入 cache
            reason = SkipReason(
                SkipKind.EXTRACTION_FAILURE,
                f"failed to extract struct fields for {key.name}: {exc}",
            )
            logger.info("Skipping %s: %s", key, reason)
            return ResolvedType.skipped_type(key.location, key.name, reason)

        resolved = cache.insert(key, ResolvedType(name=key.name, location=key.location))
        resolved.providers = self._find_providers(key)
        for field_info in info.fields:
            resolved.fields.append(self._resolve_field(field_info, cache))
        return resolved

    def _find_providers(self, key: TypeKey) -> list[ProviderInfo]:
        if self.provider_finder is None:
            return []
        try:
            return list(
                self.provider_finder.find_providers_returning(
                    key.name, key.location, self.search_pattern
                )
            )
        except COLLABORATOR_ERRORS as exc:
            logger.debug("Provider lookup failed for %s: %s", key, exc)
            return []

    def _resolve_field(self, info: FieldInfo, cache: ResolutionCache) -> FieldNode:
        if is_builtin_type(info.type_name):
            return PrimitiveField(
                field_name=info.name,
                type_name=info.type_name,
                is_pointer=info.is_pointer,
            )
        if info.is_interface:
            # 匿名 interface 無法搜尋實作
            resolution: Binding = Unresolved()
            if info.package_path:
                resolution = self._bind_interface(info, cache)
            return InterfaceField(
                field_name=info.name,
                interface_name=info.type_name,
                interface_location=info.package_path,
                is_pointer=info.is_pointer,
                resolution=resolution,
            )
        if info.package_path:
            return ConcreteField(
                field_name=info.name,
                resolved_type=self._resolve(
                    TypeKey(info.package_path, info.type_name), cache
                ),
                is_pointer=info.is_pointer,
            )
        return PrimitiveField(
            field_name=info.name,
            type_name=info.type_name,
            is_pointer=info.is_pointer,
        )

    def _bind_interface(self, info: FieldInfo, cache: ResolutionCache) -> Binding:
        try:
            refs = self.implementation_finder.find_implementations(
                info.type_name, info.package_path, self.search_pattern
            )
        except COLLABORATOR_ERRORS as exc:
            return self._skip(
                info,
                SkipKind.INTERFACE_LOOKUP_FAILURE,
                f"failed to find interface references: {exc}",
            )

        if not refs:
            return self._skip(info, SkipKind.NO_BINDING, "no implementing types found")
        if len(refs) > 1:
            return self._skip(
                info,
                SkipKind.AMBIGUOUS_BINDING,
                f"multiple implementing types found ({len(refs)})",
            )

        ref = refs[0]
        resolved = self._resolve(
            TypeKey(ref.implementing_pkg_path, ref.implementing_type), cache
        )
        if resolved.skipped:
            return self._skip(
                info,
                SkipKind.RECURSIVE_ANALYSIS_FAILURE,
                f"failed to analyze implementing type: {resolved.skip_reason}",
            )
        return ResolvedTo(resolved_type=resolved)

    def _skip(self, info: FieldInfo, kind: SkipKind, message: str) -> SkippedWithReason:
        logger.info("Field %s (%s) skipped: %s", info.name, info.type_name, message)
        return SkippedWithReason(reason=SkipReason(kind, message))


def flatten_roots(results: Sequence[RootResult]) -> tuple[list[ResolvedType], list[str | None]]:
    """把 `RootResult` 拆成 (roots, injectors)。"""
    return [r.resolved for r in results], [r.injector for r in results]
