from __future__ import annotations

from pathlib import Path

import pytest

from runner.wire_analyzer import AnalyzerConfig, ResolutionCache, WireAnalyzer
from shared.resolution_types import (
    ConcreteField,
    InterfaceField,
    PrimitiveField,
    ResolvedTo,
    ResolvedType,
    SkipKind,
    SkippedWithReason,
    TypeKey,
    Unresolved,
)
from shared.wire_errors import WireParseError
from shared.wire_types import FieldInfo, ImplementationRef, ProviderInfo, RootTypeRef
from tests.fakes import FakeExtractor, FakeImplementationFinder, FakeProviderFinder

APP = "example.com/app"


def _field(name: str, type_name: str, package_path: str = APP, **kwargs) -> FieldInfo:
    return FieldInfo(name=name, type_name=type_name, package_path=package_path, **kwargs)


def _analyzer(
    structs: dict,
    implementations: dict | None = None,
    providers: dict | None = None,
    failing_interfaces: set | None = None,
) -> tuple[WireAnalyzer, FakeExtractor, FakeImplementationFinder]:
    extractor = FakeExtractor(structs)
    finder = FakeImplementationFinder(implementations, failing_interfaces)
    analyzer = WireAnalyzer(
        extractor=extractor,
        implementation_finder=finder,
        provider_finder=FakeProviderFinder(providers),
    )
    return analyzer, extractor, finder


def _impl(name: str, package_path: str = APP) -> ImplementationRef:
    return ImplementationRef(implementing_type=name, implementing_pkg_path=package_path)


def test_interface_chain_resolves_to_single_implementations() -> None:
    analyzer, _, _ = _analyzer(
        structs={
            (APP, "Handler"): [_field("service", "Service", is_interface=True)],
            (APP, "ServiceImpl"): [_field("repo", "Repository", is_interface=True)],
            (APP, "RepoImpl"): [_field("dsn", "string", package_path="")],
        },
        implementations={
            (APP, "Service"): [_impl("ServiceImpl")],
            (APP, "Repository"): [_impl("RepoImpl")],
        },
    )

    handler = analyzer.resolve(APP, "Handler")

    assert not handler.skipped
    service = handler.fields[0]
    assert isinstance(service, InterfaceField)
    assert service.interface_name == "Service"
    assert isinstance(service.resolution, ResolvedTo)
    service_impl = service.resolution.resolved_type
    assert service_impl.name == "ServiceImpl"
    repo = service_impl.fields[0]
    assert isinstance(repo, InterfaceField)
    assert isinstance(repo.resolution, ResolvedTo)
    repo_impl = repo.resolution.resolved_type
    assert repo_impl.name == "RepoImpl"
    assert repo_impl.fields == [PrimitiveField(field_name="dsn", type_name="string")]


def test_self_reference_terminates_with_shared_identity() -> None:
    analyzer, extractor, _ = _analyzer(
        structs={(APP, "Node"): [_field("next", "Node", is_pointer=True)]}
    )

    node = analyzer.resolve(APP, "Node")

    field = node.fields[0]
    assert isinstance(field, ConcreteField)
    assert field.is_pointer
    assert field.resolved_type is node
    assert extractor.calls == [(APP, "Node")]


def test_mutual_reference_terminates() -> None:
    analyzer, extractor, _ = _analyzer(
        structs={
            (APP, "A"): [_field("b", "B")],
            (APP, "B"): [_field("a", "A")],
        }
    )

    a = analyzer.resolve(APP, "A")

    b = a.fields[0].resolved_type
    assert b.name == "B"
    assert b.fields[0].resolved_type is a
    assert extractor.calls == [(APP, "A"), (APP, "B")]


def test_cycle_through_interface_binding() -> None:
    analyzer, _, _ = _analyzer(
        structs={
            (APP, "Server"): [_field("hooks", "Hook", is_interface=True)],
            (APP, "ServerHook"): [_field("server", "Server", is_pointer=True)],
        },
        implementations={(APP, "Hook"): [_impl("ServerHook")]},
    )

    server = analyzer.resolve(APP, "Server")

    binding = server.fields[0].resolution
    assert isinstance(binding, ResolvedTo)
    assert binding.resolved_type.fields[0].resolved_type is server


def test_shared_type_resolved_once_across_roots() -> None:
    analyzer, extractor, _ = _analyzer(
        structs={
            (APP, "First"): [_field("config", "Config")],
            (APP, "Second"): [_field("config", "Config", is_pointer=True)],
            (APP, "Config"): [_field("name", "string", package_path="")],
        }
    )

    first, second = analyzer.resolve_roots(
        [RootTypeRef(name="First", location=APP), RootTypeRef(name="Second", location=APP)]
    )

    assert first.fields[0].resolved_type is second.fields[0].resolved_type
    assert extractor.calls.count((APP, "Config")) == 1


def test_same_root_twice_yields_identical_tree() -> None:
    analyzer, _, _ = _analyzer(
        structs={
            (APP, "Root"): [
                _field("a", "int", package_path=""),
                _field("svc", "Service", is_interface=True),
            ],
        }
    )

    first, second = analyzer.resolve_roots(
        [RootTypeRef(name="Root", location=APP), RootTypeRef(name="Root", location=APP)]
    )

    assert first is second
    assert [f.field_name for f in first.fields] == ["a", "svc"]


def test_no_implementations_is_skipped() -> None:
    analyzer, _, _ = _analyzer(
        structs={(APP, "Root"): [_field("clock", "Clock", is_interface=True)]}
    )

    binding = analyzer.resolve(APP, "Root").fields[0].resolution

    assert isinstance(binding, SkippedWithReason)
    assert binding.reason.kind is SkipKind.NO_BINDING
    assert str(binding.reason) == "no implementing types found"


def test_multiple_implementations_are_not_guessed() -> None:
    analyzer, extractor, _ = _analyzer(
        structs={
            (APP, "Root"): [_field("notifier", "Notifier", is_interface=True)],
            (APP, "Email"): [],
            (APP, "Slack"): [],
        },
        implementations={(APP, "Notifier"): [_impl("Email"), _impl("Slack")]},
    )

    binding = analyzer.resolve(APP, "Root").fields[0].resolution

    assert isinstance(binding, SkippedWithReason)
    assert binding.reason.kind is SkipKind.AMBIGUOUS_BINDING
    assert binding.reason.message == "multiple implementing types found (2)"
    assert extractor.calls == [(APP, "Root")]


def test_implementation_failure_wraps_detail() -> None:
    analyzer, _, _ = _analyzer(
        structs={(APP, "Root"): [_field("svc", "Service", is_interface=True)]},
        implementations={(APP, "Service"): [_impl("Missing")]},
    )

    binding = analyzer.resolve(APP, "Root").fields[0].resolution

    assert isinstance(binding, SkippedWithReason)
    assert binding.reason.kind is SkipKind.RECURSIVE_ANALYSIS_FAILURE
    assert binding.reason.message.startswith("failed to analyze implementing type: ")
    assert "struct Missing not found" in binding.reason.message


def test_interface_lookup_error_becomes_skip() -> None:
    analyzer, _, _ = _analyzer(
        structs={(APP, "Root"): [_field("svc", "Service", is_interface=True)]},
        failing_interfaces={(APP, "Service")},
    )

    binding = analyzer.resolve(APP, "Root").fields[0].resolution

    assert isinstance(binding, SkippedWithReason)
    assert binding.reason.kind is SkipKind.INTERFACE_LOOKUP_FAILURE
    assert binding.reason.message.startswith("failed to find interface references: ")


def test_anonymous_interface_is_unresolved() -> None:
    analyzer, _, finder = _analyzer(
        structs={
            (APP, "Root"): [
                _field("hook", "interface{ Run() }", package_path="", is_interface=True)
            ]
        }
    )

    field = analyzer.resolve(APP, "Root").fields[0]

    assert isinstance(field, InterfaceField)
    assert isinstance(field.resolution, Unresolved)
    assert finder.calls == []


def test_primitive_fields_never_trigger_lookups() -> None:
    analyzer, extractor, finder = _analyzer(
        structs={
            (APP, "Root"): [
                _field("name", "string", package_path=""),
                _field("count", "int", package_path="", is_pointer=True),
                _field("err", "error", package_path="", is_interface=True),
                _field("tags", "[]string", package_path=""),
            ]
        }
    )

    root = analyzer.resolve(APP, "Root")

    assert all(isinstance(f, PrimitiveField) for f in root.fields)
    assert root.fields[1].is_pointer
    assert extractor.calls == [(APP, "Root")]
    assert finder.calls == []


def test_skipped_concrete_field_stays_wrapped() -> None:
    analyzer, _, _ = _analyzer(
        structs={(APP, "Root"): [_field("ext", "Client", package_path="example.com/ext")]}
    )

    field = analyzer.resolve(APP, "Root").fields[0]

    assert isinstance(field, ConcreteField)
    assert field.resolved_type.skipped
    assert field.resolved_type.skip_reason.kind is SkipKind.EXTRACTION_FAILURE
    assert field.resolved_type.fields == []


def test_partial_failure_isolation() -> None:
    analyzer, _, _ = _analyzer(
        structs={
            (APP, "One"): [_field("id", "int", package_path="")],
            (APP, "Three"): [],
        }
    )

    results = analyzer.resolve_roots(
        [
            RootTypeRef(name="One", location=APP),
            RootTypeRef(name="Two", location=APP),
            RootTypeRef(name="Three", location=APP),
        ]
    )

    assert len(results) == 3
    assert not results[0].skipped
    assert results[1].skipped
    assert "struct Two not found in package example.com/app" in str(results[1].skip_reason)
    assert not results[2].skipped


def test_skipped_root_reason_is_prefixed() -> None:
    analyzer, _, _ = _analyzer(
        structs={(APP, "Root"): [_field("gone", "Gone")]}
    )

    root, missing = analyzer.resolve_roots(
        [RootTypeRef(name="Root", location=APP), RootTypeRef(name="Missing", location=APP)]
    )

    assert missing.skip_reason.kind is SkipKind.EXTRACTION_FAILURE
    assert str(missing.skip_reason) == (
        "failed to analyze: failed to extract struct fields for Missing: "
        "struct Missing not found in package example.com/app"
    )
    # field 層級的 SKIPPED 節點不加前綴
    assert str(root.fields[0].resolved_type.skip_reason).startswith(
        "failed to extract struct fields for Gone"
    )


def test_extraction_failure_is_not_cached() -> None:
    analyzer, extractor, _ = _analyzer(structs={})
    cache = ResolutionCache()

    first = analyzer.resolve(APP, "Gone", cache)
    second = analyzer.resolve(APP, "Gone", cache)

    assert first.skipped and second.skipped
    assert TypeKey(APP, "Gone") not in cache
    assert len(extractor.calls) == 2


def test_empty_location_is_distinct_key() -> None:
    analyzer, extractor, _ = _analyzer(
        structs={("", "Root"): [], (APP, "Root"): []}
    )
    cache = ResolutionCache()

    local = analyzer.resolve("", "Root", cache)
    qualified = analyzer.resolve(APP, "Root", cache)

    assert local is not qualified
    assert len(cache) == 2


def test_providers_populated_and_failures_ignored() -> None:
    provider = ProviderInfo(name="NewRoot", package_path=APP)
    analyzer, _, _ = _analyzer(
        structs={(APP, "Root"): []}, providers={(APP, "Root"): [provider]}
    )
    assert analyzer.resolve(APP, "Root").providers == [provider]

    failing = WireAnalyzer(
        extractor=FakeExtractor({(APP, "Root"): []}),
        implementation_finder=FakeImplementationFinder(),
        provider_finder=FakeProviderFinder(failing=True),
    )
    root = failing.resolve(APP, "Root")
    assert not root.skipped
    assert root.providers == []


def test_cache_first_writer_wins() -> None:
    cache = ResolutionCache()
    key = TypeKey(APP, "Root")
    first = ResolvedType(name="Root", location=APP)

    assert cache.insert(key, first) is first
    assert cache.insert(key, ResolvedType(name="Root", location=APP)) is first
    assert list(cache.keys()) == [key]


def test_analyze_fixture_module(basic_module: Path) -> None:
    analyzer = WireAnalyzer.from_config(AnalyzerConfig(work_dir=basic_module))

    results = analyzer.analyze_wire_file(basic_module / "wire.go")

    assert [(r.injector, r.resolved.name) for r in results] == [
        ("InitializeHandler", "Handler"),
        ("InitializeApp", "App"),
    ]
    handler = results[0].resolved
    assert handler.location == "example.com/basic/handler"
    assert [p.name for p in handler.providers] == ["NewHandler"]
    users, next_handler, err = handler.fields
    assert isinstance(users, ConcreteField) and users.is_pointer
    assert next_handler.resolved_type is handler
    assert err == PrimitiveField(field_name="Err", type_name="error")

    service = users.resolved_type
    finder, notifier, clock, name, tags, hook = service.fields
    assert isinstance(finder.resolution, ResolvedTo)
    repository = finder.resolution.resolved_type
    assert repository.key == TypeKey("example.com/basic/repository", "UserRepository")
    assert repository.fields[0].resolved_type.name == "DB"
    assert notifier.resolution.reason.message == "multiple implementing types found (2)"
    assert clock.resolution.reason.message == "no implementing types found"
    assert name == PrimitiveField(field_name="name", type_name="string")
    assert tags == PrimitiveField(field_name="tags", type_name="[]string")
    assert isinstance(hook.resolution, Unresolved)

    app = results[1].resolved
    assert app.fields[0].resolved_type is handler


def test_analyze_missing_wire_file_raises(tmp_path: Path) -> None:
    analyzer = WireAnalyzer.from_config(AnalyzerConfig(work_dir=tmp_path))

    with pytest.raises(WireParseError):
        analyzer.analyze_wire_file(tmp_path / "wire.go")
