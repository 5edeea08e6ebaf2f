"""Mermaidチェックの統括クラス."""

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Union

from mermaid_check.core.config import CheckerConfig
from mermaid_check.core.file_manager import TempFileManager
from mermaid_check.models.validation_schemas import (
    BlockResult,
    CheckSummary,
    DocumentReport,
    FailedFile,
    MermaidBlock,
    ValidationResult,
)
from mermaid_check.validators.mermaid_extractor import MermaidExtractor
from mermaid_check.validators.mermaid_validator import setup_validator


logger = logging.getLogger(__name__)

# 終了コード
EXIT_OK = 0
EXIT_INVALID = 1
EXIT_ERROR = 2

# validate(code) -> ValidationResult を持つオブジェクトを返すコルーチン関数
ValidatorProvider = Callable[[], Awaitable[Any]]


class MermaidChecker:
    """Markdownの抽出・検証・集計を統括するクラス."""

    def __init__(
        self,
        config: Optional[CheckerConfig] = None,
        validator_provider: Optional[ValidatorProvider] = None,
        workspace: Optional[Path] = None,
    ):
        """
        Args:
            config: チェック設定
            validator_provider: バリデータを返すコルーチン関数（省略時は共有バリデータ）
            workspace: ブロックを.mmdファイルとして書き出すディレクトリ（省略時は書き出さない）
        """
        self.config = config or CheckerConfig()
        self.extractor = MermaidExtractor(self.config.fence_markers)
        self.temp_manager = TempFileManager()
        self.workspace = workspace
        self._validator_provider = validator_provider or (lambda: setup_validator(self.config))
        self._validator = None

    async def get_validator(self):
        """
        バリデータを取得する（初回のみ生成する）.

        Raises:
            MermaidSetupError: Mermaid実行環境を準備できない場合
        """
        if self._validator is None:
            self._validator = await self._validator_provider()
        return self._validator

    async def check_file(self, path: Union[str, Path]) -> DocumentReport:
        """
        Markdownファイル1つをチェックする.

        Raises:
            OSError: ファイルを読み込めない場合
            UnicodeDecodeError: UTF-8として読み込めない場合
            MermaidSetupError: Mermaid実行環境を準備できない場合
        """
        content = await asyncio.to_thread(Path(path).read_text, encoding="utf-8")
        return await self.check_content(content, source_file=str(path))

    async def check_content(self, content: str, source_file: str = "<content>") -> DocumentReport:
        """
        Markdownコンテンツ内の全Mermaidブロックをチェックする.

        Args:
            content: Markdown形式のコンテンツ
            source_file: レポートに記録するソース名

        Returns:
            DocumentReport（ブロックは抽出順）
        """
        report = DocumentReport(source_file=source_file)

        unclosed_line = self.extractor.detect_unclosed_block(content)
        if unclosed_line is not None:
            logger.warning(
                "%s:%d: unterminated mermaid block ignored", source_file, unclosed_line
            )

        blocks = self.extractor.extract_mermaid_blocks(content)
        if not blocks:
            # ブロックがなければバリデータを起動しない
            return report

        validator = await self.get_validator()
        results = await self._validate_blocks(validator, blocks)

        for block, result in zip(blocks, results):
            file_name = None
            if self.workspace is not None:
                file_name = self.temp_manager.write_block(self.workspace, source_file, block)
            report.add(BlockResult.merge(block, result, file_name=file_name))

        return report

    async def check_files(self, paths: Iterable[Union[str, Path]]) -> CheckSummary:
        """
        複数ファイルをチェックし、サマリーを集計する.

        読み込めないファイルはfailed_filesに記録し、残りのファイルのチェックを続ける。

        Raises:
            MermaidSetupError: Mermaid実行環境を準備できない場合
        """
        reports: List[DocumentReport] = []
        failed: List[FailedFile] = []

        for path in paths:
            try:
                reports.append(await self.check_file(path))
            except (OSError, UnicodeDecodeError) as e:
                logger.error("Error processing %s: %s", path, e)
                failed.append(FailedFile(path=str(path), message=str(e)))

        return CheckSummary.from_reports(reports, failed)

    async def _validate_blocks(self, validator, blocks: List[MermaidBlock]) -> List[ValidationResult]:
        """ブロックを検証し、抽出順の結果リストを返す."""
        if self.config.concurrency <= 1:
            return [await validator.validate(block.code) for block in blocks]

        semaphore = asyncio.Semaphore(self.config.concurrency)

        async def _validate(block: MermaidBlock) -> ValidationResult:
            async with semaphore:
                return await validator.validate(block.code)

        # gatherは引数の順序で結果を返す
        return list(await asyncio.gather(*(_validate(block) for block in blocks)))


def exit_code_for(reports: Iterable[DocumentReport], had_errors: bool = False) -> int:
    """
    チェック結果から終了コードを決定する.

    Args:
        reports: ドキュメント毎の結果
        had_errors: 読み込み失敗などの実行エラーがあったか

    Returns:
        0: 全て有効（またはブロックなし）、1: 無効なブロックあり、2: 実行エラー
    """
    if had_errors:
        return EXIT_ERROR
    if any(not report.passed for report in reports):
        return EXIT_INVALID
    return EXIT_OK
