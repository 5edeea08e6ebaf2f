"""mermaid_check / mermaid_check_files MCPツールの実装."""

from typing import Dict, Any, List, Optional

from pydantic import ValidationError

from mermaid_check.core.checker import MermaidChecker, ValidatorProvider
from mermaid_check.core.config import CheckerConfig, ConfigError, load_config
from mermaid_check.core.file_collector import InputNotFoundError, collect_markdown_files
from mermaid_check.models.schemas import (
    CheckContentRequest,
    CheckFilesRequest,
    ErrorResponse,
    ErrorInfo,
)
from mermaid_check.validators.mermaid_runtime import INSTALL_HINT, MermaidSetupError


async def validate_mermaid(
    arguments: Dict[str, Any],
    config: Optional[CheckerConfig] = None,
    validator_provider: Optional[ValidatorProvider] = None,
) -> Dict[str, Any]:
    """
    Markdownコンテンツ内のMermaidコードブロックを検証する.

    Args:
        arguments: MCPツール呼び出し時の引数
            - content: Markdown文字列（必須）
            - source_name: レポートに表示するソース名（任意）
        config: チェック設定（省略時は設定ファイル/環境変数から読み込む）
        validator_provider: バリデータを返すコルーチン関数（テスト用）

    Returns:
        DocumentReportの辞書、失敗時はErrorResponseの辞書
    """
    try:
        request = CheckContentRequest(**arguments)
        checker = MermaidChecker(config or load_config(), validator_provider=validator_provider)
        report = await checker.check_content(request.content, source_file=request.source_name)
        return report.to_dict()
    except Exception as e:
        return _error_response(e)


async def validate_mermaid_files(
    arguments: Dict[str, Any],
    config: Optional[CheckerConfig] = None,
    validator_provider: Optional[ValidatorProvider] = None,
) -> Dict[str, Any]:
    """
    Markdownファイル（パスまたはglobパターン）内のMermaidコードブロックを検証する.

    Args:
        arguments: MCPツール呼び出し時の引数
            - paths: ファイルパスまたはglobパターンのリスト（必須）

    Returns:
        CheckSummaryの辞書、失敗時はErrorResponseの辞書
    """
    try:
        request = CheckFilesRequest(**arguments)
        files: List = []
        for target in request.paths:
            for path in collect_markdown_files(target):
                if path not in files:
                    files.append(path)
        checker = MermaidChecker(config or load_config(), validator_provider=validator_provider)
        summary = await checker.check_files(files)
        return summary.to_dict()
    except Exception as e:
        return _error_response(e)


def _error_response(error: Exception) -> Dict[str, Any]:
    """例外をErrorResponseの辞書に変換する."""
    if isinstance(error, MermaidSetupError):
        # Node.js / mermaid / jsdom 未インストール
        info = ErrorInfo(
            code="MERMAID_NOT_FOUND",
            message=str(error),
            details=(
                "Node.js with the 'mermaid' and 'jsdom' packages is required for validation.\n"
                f"{INSTALL_HINT}"
            ),
        )
    elif isinstance(error, InputNotFoundError):
        info = ErrorInfo(
            code="INPUT_NOT_FOUND",
            message=str(error),
            details="Please check the given paths or patterns.",
        )
    elif isinstance(error, (ValidationError, ConfigError)):
        info = ErrorInfo(
            code="INVALID_INPUT",
            message="Invalid input parameters",
            details=str(error),
        )
    else:
        info = ErrorInfo(
            code="VALIDATION_ERROR",
            message=f"An unexpected error occurred during validation: {error}",
            details="Please check the content and try again.",
        )
    return ErrorResponse(error=info).model_dump()


# ツール定義（MCP Server登録用）
TOOL_DEFINITIONS = [
    {
        "name": "mermaid_check",
        "description": (
            "Validate the syntax of Mermaid diagrams embedded in Markdown content. "
            "Returns per-diagram results with line numbers, diagram type, error message and timing. "
            "Requires Node.js with the 'mermaid' and 'jsdom' npm packages."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "content": {
                    "type": "string",
                    "description": "Markdown content to validate",
                },
                "source_name": {
                    "type": "string",
                    "description": "Name shown as sourceFile in the report",
                },
            },
            "required": ["content"],
        },
    },
    {
        "name": "mermaid_check_files",
        "description": (
            "Validate Mermaid diagrams in Markdown files. "
            "Accepts file paths or glob patterns and returns a per-file report plus a summary."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "paths": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Markdown file paths or glob patterns (e.g. docs/**/*.md)",
                },
            },
            "required": ["paths"],
        },
    },
]
