from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from runner.report_builder import build_report
from runner.tree_render import render_tree
from runner.wire_analyzer import (
    DEFAULT_SEARCH_PATTERN,
    AnalyzerConfig,
    WireAnalyzer,
    flatten_roots,
)
from shared.wire_errors import WiretraceError

logger = logging.getLogger(__name__)


def run_once(
    work_dir: Path,
    wire_file: Path,
    search_pattern: str = DEFAULT_SEARCH_PATTERN,
    output_format: str = "tree",
) -> str:
    """解析一次 wire 檔並回傳輸出文字。

    Args:
        work_dir: package 解析的基準目錄。
        wire_file: wire.go 路徑（相對路徑以 work_dir 為基準）。
        search_pattern: 搜尋實作與 provider 的 package pattern。
        output_format: ``tree`` 或 ``json``。

    Returns:
        輸出文字。

    Raises:
        WireParseError: wire 檔無法解析。
    """
    if not wire_file.is_absolute():
        wire_file = work_dir / wire_file
    analyzer = WireAnalyzer.from_config(
        AnalyzerConfig(work_dir=work_dir, search_pattern=search_pattern)
    )
    roots, injectors = flatten_roots(analyzer.analyze_wire_file(wire_file))
    if output_format == "json":
        return build_report(roots, injectors).model_dump_json(indent=2)
    return render_tree(roots)


def build_parser() -> argparse.ArgumentParser:
    """建立 CLI 參數解析器。

    Returns:
        `ArgumentParser`。
    """
    parser = argparse.ArgumentParser(
        description="Resolve the dependency tree behind wire injectors"
    )
    parser.add_argument("--work_dir", default=os.getenv("WIRETRACE_WORK_DIR", "."))
    parser.add_argument("--wire_file", default="wire.go")
    parser.add_argument(
        "--pattern", default=os.getenv("WIRETRACE_PATTERN", DEFAULT_SEARCH_PATTERN)
    )
    parser.add_argument("--format", choices=("tree", "json"), default="tree")
    parser.add_argument("--out")
    parser.add_argument("--log_level", default="WARNING")
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI 入口點。"""
    load_dotenv()
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        output = run_once(
            Path(args.work_dir).expanduser(),
            Path(args.wire_file).expanduser(),
            search_pattern=args.pattern,
            output_format=args.format,
        )
    except WiretraceError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if args.out:
        out_path = Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(output, encoding="utf-8")
        logger.info("Wrote %s", out_path)
    else:
        sys.stdout.write(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
