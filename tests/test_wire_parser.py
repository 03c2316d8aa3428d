from __future__ import annotations

from pathlib import Path

import pytest

from runner.wire_parser import parse_wire_file
from shared.wire_errors import WireParseError


def test_parse_fixture_wire_file(basic_module: Path) -> None:
    functions = parse_wire_file(basic_module / "wire.go")

    assert [f.name for f in functions] == ["InitializeHandler", "InitializeApp"]
    handler = functions[0]
    assert [(r.name, r.location, r.is_pointer) for r in handler.return_types] == [
        ("Handler", "example.com/basic/handler", True)
    ]
    assert handler.build_args == [
        "handler.NewHandler",
        "service.NewUserService",
        "repositorySet",
    ]
    app = functions[1]
    assert [(r.name, r.location) for r in app.return_types] == [
        ("App", "example.com/basic")
    ]


def test_aliased_wire_import(write_module) -> None:
    root = write_module(
        {
            "go.mod": "module example.com/svc\n",
            "config.go": "package main\n\ntype Config struct {\n\tPort int\n}\n",
            "inject.go": """//go:build wireinject

package main

import w "github.com/google/wire"

func Build() (Config, error) {
	w.Build(w.Value(Config{Port: 1}))
	return Config{}, nil
}

func NotInjector() Config {
	return Config{}
}
""",
        }
    )

    functions = parse_wire_file(root / "inject.go")

    assert len(functions) == 1
    assert functions[0].name == "Build"
    assert functions[0].return_types[0].name == "Config"
    assert not functions[0].return_types[0].is_pointer
    assert functions[0].build_args == ["w.Value(Config{Port: 1})"]


def test_missing_wire_file(tmp_path: Path) -> None:
    with pytest.raises(WireParseError, match="wire file not found"):
        parse_wire_file(tmp_path / "wire.go")


def test_wire_file_with_syntax_error(write_module) -> None:
    root = write_module(
        {
            "go.mod": "module example.com/bad\n",
            "wire.go": "package main\n\nfunc Init() *App {\n\twire.Build(\n",
        }
    )

    with pytest.raises(WireParseError, match="syntax error"):
        parse_wire_file(root / "wire.go")


def test_wire_file_without_injectors(write_module) -> None:
    root = write_module(
        {"go.mod": "module example.com/none\n", "wire.go": "package main\n"}
    )

    assert parse_wire_file(root / "wire.go") == []
