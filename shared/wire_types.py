from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


class FieldInfo(BaseModel):
    """Type extractor 回傳的單一 struct field。"""

    name: str = Field(..., description="欄位名稱（embedded field 為型別名稱）。")
    type_name: str = Field(
        ..., description="去除 pointer 後的型別名稱；無名型別為其 canonical 字串。"
    )
    package_path: str = Field(
        default="", description="型別定義所在 package（builtin/無名型別為空字串）。"
    )
    is_pointer: bool = Field(default=False, description="是否為 pointer 型別。")
    is_interface: bool = Field(
        default=False, description="underlying type 是否為 interface。"
    )


class StructFieldsInfo(BaseModel):
    """Type extractor 對單一 struct 的輸出。"""

    struct_name: str = Field(..., description="struct 名稱。")
    package_path: str = Field(default="", description="struct 所在 package。")
    fields: list[FieldInfo] = Field(
        default_factory=list, description="依宣告順序排列的欄位。"
    )


class ImplementationRef(BaseModel):
    """Implementation finder 找到的實作型別。"""

    implementing_type: str = Field(..., description="實作型別名稱。")
    implementing_pkg_path: str = Field(..., description="實作型別所在 package。")
    pointer_receiver: bool = Field(
        default=False, description="是否只有 pointer（*T）滿足 interface。"
    )


class ProviderInfo(BaseModel):
    """回傳指定型別的 provider function。"""

    name: str = Field(..., description="函式名稱。")
    package_path: str = Field(..., description="函式所在 package。")


class RootTypeRef(BaseModel):
    """wire injector 回傳的 root 型別參考。"""

    name: str = Field(..., description="型別名稱。")
    location: str = Field(
        default="", description="型別所在 package（空字串代表 work dir package）。"
    )
    is_pointer: bool = Field(default=False, description="是否以 pointer 回傳。")


class WireFunction(BaseModel):
    """wire 檔案中呼叫 wire.Build 的 injector function。"""

    name: str = Field(..., description="injector 函式名稱。")
    return_types: list[RootTypeRef] = Field(
        default_factory=list, description="回傳型別（排除 error 與 cleanup func）。"
    )
    build_args: list[str] = Field(
        default_factory=list, description="wire.Build 的原始參數字串。"
    )


# ---------------------------------------------------------------------------
# Report document（arena 形式，field 以 type key 參照型別）
# ---------------------------------------------------------------------------


class BindingEntry(BaseModel):
    """interface field 的 binding 結果。"""

    status: Literal["unresolved", "resolved", "skipped"] = Field(
        ..., description="binding 狀態。"
    )
    type_key: str | None = Field(default=None, description="綁定的實作型別 key。")
    skip_kind: str | None = Field(default=None, description="skip 分類。")
    skip_reason: str | None = Field(default=None, description="skip 說明。")


class ConcreteFieldEntry(BaseModel):
    kind: Literal["concrete"] = "concrete"
    name: str = Field(..., description="欄位名稱。")
    type_key: str = Field(..., description="欄位型別的 key。")
    is_pointer: bool = Field(default=False, description="是否為 pointer。")


class InterfaceFieldEntry(BaseModel):
    kind: Literal["interface"] = "interface"
    name: str = Field(..., description="欄位名稱。")
    interface_name: str = Field(..., description="interface 名稱。")
    interface_location: str = Field(default="", description="interface 所在 package。")
    is_pointer: bool = Field(default=False, description="是否為 pointer。")
    binding: BindingEntry = Field(..., description="binding 結果。")


class PrimitiveFieldEntry(BaseModel):
    kind: Literal["primitive"] = "primitive"
    name: str = Field(..., description="欄位名稱。")
    type_name: str = Field(..., description="型別名稱。")
    is_pointer: bool = Field(default=False, description="是否為 pointer。")


FieldEntry = Annotated[
    Union[ConcreteFieldEntry, InterfaceFieldEntry, PrimitiveFieldEntry],
    Field(discriminator="kind"),
]


class TypeEntry(BaseModel):
    """arena 中的單一型別。"""

    key: str = Field(..., description="型別 key（location.name）。")
    name: str = Field(..., description="型別名稱。")
    location: str = Field(default="", description="型別所在 package。")
    status: Literal["resolved", "skipped"] = Field(..., description="解析狀態。")
    skip_kind: str | None = Field(default=None, description="skip 分類。")
    skip_reason: str | None = Field(default=None, description="skip 說明。")
    providers: list[ProviderInfo] = Field(
        default_factory=list, description="provider functions。"
    )
    fields: list[FieldEntry] = Field(default_factory=list, description="欄位列表。")


class RootEntry(BaseModel):
    """單一 root 的解析入口。"""

    type_key: str = Field(..., description="root 型別的 key。")
    injector: str | None = Field(
        default=None, description="產生此 root 的 injector 函式（可為 null）。"
    )


class WireAnalysisReport(BaseModel):
    """整次 run 的解析結果（roots + type arena）。"""

    roots: list[RootEntry] = Field(default_factory=list, description="root 列表。")
    types: list[TypeEntry] = Field(default_factory=list, description="型別 arena。")
    version: str = Field(default="1", description="schema 版本。")
    generated_at: datetime | None = Field(
        default=None, description="產生時間（可為 null）。"
    )

    def type_by_key(self, key: str) -> TypeEntry:
        """依 key 取得 arena 中的型別。

        Raises:
            KeyError: key 不存在。
        """
        for entry in self.types:
            if entry.key == key:
                return entry
        raise KeyError(key)
