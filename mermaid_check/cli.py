"""mermaid-check コマンドラインエントリーポイント."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from mermaid_check.core.checker import (
    EXIT_ERROR,
    MermaidChecker,
    ValidatorProvider,
    exit_code_for,
)
from mermaid_check.core.config import CheckerConfig, ConfigError, load_config
from mermaid_check.core.file_collector import (
    InputNotFoundError,
    collect_markdown_files,
    is_single_file,
)
from mermaid_check.core.file_manager import TempFileManager
from mermaid_check.core.report_formatter import format_report, format_summary, to_json
from mermaid_check.validators.mermaid_runtime import MermaidSetupError
from mermaid_check.validators.mermaid_validator import shutdown_validator


logger = logging.getLogger(__name__)

USAGE_EXAMPLES = """\
examples:
  mermaid-check README.md                       # check a single file
  mermaid-check README.md --quiet               # single file, JSON output
  mermaid-check "docs/**/*.md"                  # check files matching a glob
  mermaid-check --dir docs/ --recursive         # check every .md under docs/

exit codes:
  0  no diagrams found, or all diagrams valid
  1  one or more diagrams have syntax errors
  2  usage error, input not found, or mermaid could not be loaded
"""


def build_parser() -> argparse.ArgumentParser:
    """引数パーサーを構築する."""
    parser = argparse.ArgumentParser(
        prog="mermaid-check",
        description="Check the syntax of Mermaid diagrams embedded in Markdown files.",
        epilog=USAGE_EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
    )
    parser.add_argument("path", nargs="?", help="Markdown file or glob pattern")
    parser.add_argument("--dir", dest="directory", metavar="PATH", help="check all .md files in a directory")
    parser.add_argument("--recursive", action="store_true", help="with --dir, also check subdirectories")
    parser.add_argument(
        "-q", "--quiet", action="store_true",
        help="suppress per-diagram lines (single file: print JSON instead)",
    )
    parser.add_argument("--json", action="store_true", help="print the machine-readable JSON report")
    parser.add_argument("--keep-temp", action="store_true", default=None, help="keep extracted .mmd files")
    parser.add_argument("--output-dir", metavar="DIR", help="directory for extracted .mmd files (default: .mermaid_temp)")
    parser.add_argument("--timeout", type=float, metavar="SECONDS", help="per-diagram validation timeout")
    parser.add_argument("--concurrency", type=int, metavar="N", help="validate up to N diagrams at once")
    parser.add_argument("--config", type=Path, metavar="FILE", help="YAML config file (default: .mermaid-check.yaml)")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    parser.add_argument("-h", "--help", action="store_true", help="show this help message and exit")
    return parser


def main(argv: Optional[List[str]] = None, validator_provider: Optional[ValidatorProvider] = None) -> int:
    """
    CLIのメイン処理.

    Args:
        argv: コマンドライン引数（省略時はsys.argv）
        validator_provider: バリデータを返すコルーチン関数（テスト用）

    Returns:
        終了コード
    """
    parser = build_parser()
    argv = sys.argv[1:] if argv is None else argv
    args = parser.parse_args(argv)

    if not argv or args.help:
        parser.print_help()
        return EXIT_ERROR

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if not args.path and not args.directory:
        print("Error: a file, glob pattern or --dir is required", file=sys.stderr)
        parser.print_usage(sys.stderr)
        return EXIT_ERROR

    try:
        config = load_config(
            args.config,
            overrides={
                "timeout": args.timeout,
                "concurrency": args.concurrency,
                "output_dir": args.output_dir,
                "keep_temp": args.keep_temp,
            },
        )
        files = collect_markdown_files(args.path, args.directory, args.recursive)
    except (InputNotFoundError, ConfigError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR

    single = args.directory is None and is_single_file(args.path)

    try:
        return asyncio.run(_run(args, config, files, single, validator_provider))
    except MermaidSetupError as e:
        print(f"Error: mermaid could not be loaded.\n{e}", file=sys.stderr)
        return EXIT_ERROR
    except Exception as e:
        logger.debug("Unexpected error", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR


async def _run(
    args: argparse.Namespace,
    config: CheckerConfig,
    files: List[Path],
    single: bool,
    validator_provider: Optional[ValidatorProvider],
) -> int:
    temp_manager = TempFileManager()
    try:
        with temp_manager.create_workspace(config.output_dir, keep=config.keep_temp) as workspace:
            checker = MermaidChecker(config, validator_provider=validator_provider, workspace=workspace)

            if single:
                report = await checker.check_file(files[0])
                if args.json or args.quiet:
                    print(to_json(report))
                else:
                    print(format_report(report))
                return exit_code_for([report])

            summary = await checker.check_files(files)
            if args.json:
                print(to_json(summary))
            else:
                for report in summary.files:
                    print(format_report(report, verbose=not args.quiet))
                if len(files) > 1:
                    print(format_summary(summary))
            for failed in summary.failed_files:
                print(f"Error processing {failed.path}: {failed.message}", file=sys.stderr)
            return exit_code_for(summary.files, had_errors=bool(summary.failed_files))
    finally:
        if validator_provider is None:
            await shutdown_validator()


def run() -> None:
    """console_scriptsのエントリーポイント."""
    sys.exit(main())


if __name__ == "__main__":
    run()
