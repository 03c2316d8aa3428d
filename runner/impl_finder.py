"""Implementation Finder 與 Provider Finder。

兩者都在 search scope（package pattern）內搜尋：

- ``GoImplementationFinder``：method set 滿足 interface 的 named type。
- ``GoProviderFinder``：回傳值（去除 pointer 後）恰為指定型別的 top-level function。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from runner.go_packages import GoWorkspace
from shared.wire_errors import InterfaceNotFoundError
from shared.wire_types import ImplementationRef, ProviderInfo

logger = logging.getLogger(__name__)


@dataclass
class GoImplementationFinder:
    """搜尋 interface 的實作型別。

    Args:
        workspace: 已指定 work_dir 的 Go workspace。
    """

    workspace: GoWorkspace

    def find_implementations(
        self, interface_name: str, interface_location: str, search_scope: str
    ) -> list[ImplementationRef]:
        """列出 search scope 內所有實作 interface 的型別。

        Args:
            interface_name: interface 名稱。
            interface_location: interface 所在 package。
            search_scope: package pattern（如 ``./...``）。

        Returns:
            依 import path、宣告順序排列的 `ImplementationRef`。

        Raises:
            InterfaceNotFoundError: 找不到 interface 或該型別不是 interface。
        """
        package_path = self.workspace.resolve_location(interface_location)
        resolved = self.workspace.underlying(package_path, interface_name)
        if resolved is None or resolved[0].type != "interface_type":
            raise InterfaceNotFoundError(
                f"interface {interface_name} not found in package {package_path}"
            )
        required = self.workspace.interface_methods(*resolved)

        refs: list[ImplementationRef] = []
        packages = self.workspace.packages_matching(search_scope)
        for decl in self.workspace.iter_named_types(packages):
            if decl.is_alias or decl.is_generic:
                continue
            candidate_path = decl.scope.package_path
            if self.workspace.is_interface(candidate_path, decl.name):
                continue
            if _satisfies(
                self.workspace.method_set(candidate_path, decl.name, pointer=False),
                required,
            ):
                refs.append(
                    ImplementationRef(
                        implementing_type=decl.name,
                        implementing_pkg_path=candidate_path,
                    )
                )
            elif _satisfies(
                self.workspace.method_set(candidate_path, decl.name, pointer=True),
                required,
            ):
                refs.append(
                    ImplementationRef(
                        implementing_type=decl.name,
                        implementing_pkg_path=candidate_path,
                        pointer_receiver=True,
                    )
                )
        logger.debug(
            "Interface %s.%s has %d implementation(s) in %s",
            package_path,
            interface_name,
            len(refs),
            search_scope,
        )
        return refs


@dataclass
class GoProviderFinder:
    """搜尋回傳指定型別的 provider function。"""

    workspace: GoWorkspace

    def find_providers_returning(
        self, type_name: str, location: str, search_scope: str
    ) -> list[ProviderInfo]:
        package_path = self.workspace.resolve_location(location)
        providers: list[ProviderInfo] = []
        for package in self.workspace.packages_matching(search_scope):
            for func in package.functions:
                for result in self.workspace.result_types(func.result):
                    node, scope, _ = self.workspace.unalias(result, func.scope)
                    target = self.workspace.named_target(node, scope)
                    if target == (package_path, type_name):
                        providers.append(
                            ProviderInfo(name=func.name, package_path=package.import_path)
                        )
                        break
        return providers


def _satisfies(method_set: dict[str, str], required: dict[str, str]) -> bool:
    return all(method_set.get(name) == sig for name, sig in required.items())
