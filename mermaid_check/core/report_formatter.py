"""チェック結果の人間向けテキスト整形."""

import json
from pathlib import Path
from typing import List, Union

from mermaid_check.models.validation_schemas import CheckSummary, DocumentReport


PASS_ICON = "✅"
FAIL_ICON = "❌"
RULE_WIDTH = 60


def format_report(report: DocumentReport, verbose: bool = True) -> str:
    """
    1ドキュメント分の結果を整形する.

    Args:
        report: ドキュメントの結果
        verbose: ブロック毎の行を含めるか
    """
    icon = PASS_ICON if report.passed else FAIL_ICON
    status = "Passed" if report.passed else "Failed"
    lines: List[str] = [
        "",
        f"{icon} {Path(report.source_file).name} - {status}",
        "─" * RULE_WIDTH,
    ]

    if report.total_blocks == 0:
        lines.append("No Mermaid diagrams found.")
        return "\n".join(lines)

    lines.append(f"Diagrams: {report.valid_count}/{report.total_blocks} valid")
    lines.append(f"Time: {report.total_time:.1f}ms")

    if verbose:
        lines.append("")
        lines.append("Results:")
        for block in report.blocks:
            pos = f"[Line {block.line_start}]"
            if block.valid:
                lines.append(f"  {pos} {PASS_ICON} {block.diagram_type} - {block.elapsed_time:.1f}ms")
            else:
                lines.append(f"  {pos} {FAIL_ICON} {block.diagram_type}")
                # エラーメッセージは1行目のみ表示
                lines.append(f"    Error: {block.error.splitlines()[0] if block.error else ''}")

    if report.invalid_count > 0:
        lines.append("")
        lines.append(f"{FAIL_ICON} {report.invalid_count} diagram(s) failed validation")

    return "\n".join(lines)


def format_summary(summary: CheckSummary) -> str:
    """複数ファイルのサマリーを整形する."""
    invalid_icon = FAIL_ICON if summary.total_invalid > 0 else PASS_ICON
    lines = [
        "",
        "=" * RULE_WIDTH,
        "Summary",
        "=" * RULE_WIDTH,
        f"Files checked:     {summary.files_checked}",
        f"Total diagrams:    {summary.total_diagrams}",
        f"Valid:             {summary.total_valid} {PASS_ICON}",
        f"Invalid:           {summary.total_invalid} {invalid_icon}",
        f"Files with errors: {summary.files_with_errors}",
    ]
    if summary.failed_files:
        lines.append(f"Unreadable files:  {len(summary.failed_files)}")
    lines.append(f"Total time:        {summary.total_time:.1f}ms")
    lines.append("=" * RULE_WIDTH)
    return "\n".join(lines)


def to_json(result: Union[DocumentReport, CheckSummary]) -> str:
    """機械可読なJSON文字列に変換する."""
    return json.dumps(result.to_dict(), indent=2, ensure_ascii=False)
