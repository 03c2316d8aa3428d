"""Collaborator 例外類別。

所有 collaborator（package loader / type extractor / implementation finder /
wire parser）失敗時皆丟出 ``WiretraceError`` 的子類別，由 resolver 轉為
skip reason；只有 ``WireParseError`` 會中止整個 run。
"""

from __future__ import annotations


class WiretraceError(Exception):
    """wiretrace 例外的共同基底。"""


class PackageLoadError(WiretraceError):
    """找不到 package，或 package 含有語法錯誤。"""


class TypeNotFoundError(WiretraceError):
    """package 中找不到指定的型別。"""


class NotAStructError(WiretraceError):
    """指定的型別存在，但 underlying type 不是 struct。"""


class InterfaceNotFoundError(WiretraceError):
    """找不到指定的 interface，或該型別不是 interface。"""


class WireParseError(WiretraceError):
    """wire injector 檔案無法解析。"""
