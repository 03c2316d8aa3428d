"""Resolver 的 in-memory 解析樹。

``ResolvedType`` 以 identity 比較：同一個 ``(location, name)`` 在一次 run 中
只會對應一個 instance，多個 parent field 可能共用同一個節點，cycle 也會指回
外層節點。因此 ``ResolvedType`` 關閉 ``eq`` 與 ``fields`` 的 repr。

FieldNode 是封閉的 tagged union：

- ``ConcreteField``：非 interface 的 named type，遞迴解析。
- ``InterfaceField``：interface 型別，附帶 binding 結果。
- ``PrimitiveField``：builtin / 無名型別，不展開。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from shared.wire_types import ProviderInfo


class ResolutionStatus(str, Enum):
    """ResolvedType 的解析狀態。"""

    RESOLVED = "resolved"
    SKIPPED = "skipped"


class SkipKind(str, Enum):
    """Skip reason 的分類。"""

    EXTRACTION_FAILURE = "extraction_failure"
    NO_BINDING = "no_binding"
    AMBIGUOUS_BINDING = "ambiguous_binding"
    RECURSIVE_ANALYSIS_FAILURE = "recursive_analysis_failure"
    INTERFACE_LOOKUP_FAILURE = "interface_lookup_failure"


@dataclass(frozen=True)
class SkipReason:
    """附在 field 或 root 上的 skip 說明。

    Attributes:
        kind: skip 分類。
        message: 人類可讀的說明文字。
    """

    kind: SkipKind
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class TypeKey:
    """Resolver cache key。

    空字串 location 與任何非空 location 屬於不同 key space。
    """

    location: str
    name: str

    def __str__(self) -> str:
        if not self.location:
            return self.name
        return f"{self.location}.{self.name}"


@dataclass(eq=False)
class ResolvedType:
    """單一 named type 的解析結果。

    Attributes:
        name: 型別名稱。
        location: 定義所在 package（可為空字串）。
        providers: 回傳此型別的 provider functions（僅供參考）。
        fields: 依宣告順序排列的 FieldNode。
        status: 解析狀態。
        skip_reason: status 為 SKIPPED 時的原因。
    """

    name: str
    location: str = ""
    providers: list[ProviderInfo] = field(default_factory=list)
    fields: list["FieldNode"] = field(default_factory=list, repr=False)
    status: ResolutionStatus = ResolutionStatus.RESOLVED
    skip_reason: SkipReason | None = None

    @property
    def key(self) -> TypeKey:
        return TypeKey(self.location, self.name)

    @property
    def skipped(self) -> bool:
        return self.status is ResolutionStatus.SKIPPED

    @classmethod
    def skipped_type(
        cls, location: str, name: str, reason: SkipReason
    ) -> "ResolvedType":
        """建立不帶 field 資訊的 SKIPPED 節點。"""
        return cls(
            name=name,
            location=location,
            status=ResolutionStatus.SKIPPED,
            skip_reason=reason,
        )


@dataclass(frozen=True)
class Unresolved:
    """未嘗試 binding（例如匿名 interface）。"""


@dataclass(frozen=True)
class ResolvedTo:
    """interface 綁定到唯一實作。"""

    resolved_type: ResolvedType


@dataclass(frozen=True)
class SkippedWithReason:
    """interface binding 被跳過。"""

    reason: SkipReason


Binding = Union[Unresolved, ResolvedTo, SkippedWithReason]


@dataclass(frozen=True)
class ConcreteField:
    field_name: str
    resolved_type: ResolvedType
    is_pointer: bool = False


@dataclass(frozen=True)
class InterfaceField:
    field_name: str
    interface_name: str
    interface_location: str
    is_pointer: bool
    resolution: Binding


@dataclass(frozen=True)
class PrimitiveField:
    field_name: str
    type_name: str
    is_pointer: bool = False


FieldNode = Union[ConcreteField, InterfaceField, PrimitiveField]
