"""Mermaidバリデーション用スキーマ定義."""

from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field, model_serializer, model_validator
from pydantic.alias_generators import to_camel


class _ReportModel(BaseModel):
    """JSON出力時にcamelCaseのキーを使う共通基底クラス."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MermaidBlock(_ReportModel):
    """Markdownから抽出された個別のMermaidコードブロック."""

    code: str = Field(exclude=True, description="Mermaidコード本体（フェンス除く）")
    index: int = Field(ge=0, description="ドキュメント内のブロックのインデックス（0始まり）")
    line_start: int = Field(ge=1, description="最初のコンテンツ行の行番号（1始まり）")
    line_end: int = Field(ge=1, description="閉じフェンス行の行番号（1始まり）")
    diagram_type: str = Field(default="unknown", description="ダイアグラムタイプ（flowchart、sequence等）")

    @model_validator(mode="after")
    def _check_line_range(self) -> "MermaidBlock":
        if self.line_start > self.line_end:
            raise ValueError(
                f"line_start ({self.line_start}) must not exceed line_end ({self.line_end})"
            )
        return self


class ValidationResult(_ReportModel):
    """単一のMermaidコードの構文チェック結果."""

    valid: bool = Field(description="構文チェックの結果")
    error: Optional[str] = Field(default=None, description="エラーメッセージ（失敗時のみ）")
    elapsed_time: float = Field(ge=0, description="チェックに要した時間（ミリ秒）")

    @model_validator(mode="after")
    def _check_error_consistency(self) -> "ValidationResult":
        # valid=True ⇔ error=None
        if self.valid and self.error is not None:
            raise ValueError("a valid result must not carry an error message")
        if not self.valid and not self.error:
            raise ValueError("an invalid result requires a non-empty error message")
        return self


class BlockResult(ValidationResult, MermaidBlock):
    """ブロック情報とバリデーション結果を統合したレコード."""

    file_name: Optional[str] = Field(default=None, description="書き出した.mmdファイル名")

    @classmethod
    def merge(
        cls,
        block: MermaidBlock,
        result: ValidationResult,
        file_name: Optional[str] = None,
    ) -> "BlockResult":
        """ブロックと結果を1レコードにまとめる."""
        return cls(
            code=block.code,
            line_start=block.line_start,
            line_end=block.line_end,
            index=block.index,
            diagram_type=block.diagram_type,
            valid=result.valid,
            error=result.error,
            elapsed_time=result.elapsed_time,
            file_name=file_name,
        )

    @model_serializer(mode="wrap")
    def _drop_missing_file_name(self, handler):
        # fileNameはブロックファイルを書き出した場合のみ出力する
        data = handler(self)
        if self.file_name is None:
            data.pop("fileName", None)
            data.pop("file_name", None)
        return data


class DocumentReport(_ReportModel):
    """1ドキュメント分のチェック結果."""

    source_file: str = Field(description="チェック対象のファイルパス")
    total_blocks: int = Field(default=0, description="検出されたMermaidブロック数")
    valid_count: int = Field(default=0, description="有効なブロック数")
    invalid_count: int = Field(default=0, description="無効なブロック数")
    blocks: List[BlockResult] = Field(default_factory=list, description="各ブロックの結果（抽出順）")
    total_time: float = Field(default=0.0, description="全ブロックのチェック時間の合計（ミリ秒）")

    @property
    def passed(self) -> bool:
        """無効なブロックが1つもなければTrue."""
        return self.invalid_count == 0

    def add(self, block_result: BlockResult) -> None:
        """
        ブロック結果を追加し、集計値を更新する.

        Args:
            block_result: 追加するブロック結果（抽出順に追加すること）
        """
        self.blocks.append(block_result)
        self.total_blocks += 1
        self.total_time += block_result.elapsed_time
        if block_result.valid:
            self.valid_count += 1
        else:
            self.invalid_count += 1

    def to_dict(self) -> dict:
        """機械可読なJSON互換の辞書を返す."""
        return self.model_dump(mode="json", by_alias=True)


class FailedFile(_ReportModel):
    """読み込みまたはチェックに失敗したファイル."""

    path: str = Field(description="ファイルパス")
    message: str = Field(description="エラーメッセージ")


class CheckSummary(_ReportModel):
    """複数ドキュメントのチェック結果のサマリー."""

    files_checked: int = Field(description="チェックしたファイル数")
    total_diagrams: int = Field(description="全ダイアグラム数")
    total_valid: int = Field(description="有効なダイアグラム数")
    total_invalid: int = Field(description="無効なダイアグラム数")
    files_with_errors: int = Field(description="無効なブロックを含むファイル数")
    total_time: float = Field(description="全チェック時間の合計（ミリ秒）")
    files: List[DocumentReport] = Field(default_factory=list, description="ドキュメント毎の結果")
    failed_files: List[FailedFile] = Field(default_factory=list, description="処理できなかったファイル")

    @classmethod
    def from_reports(
        cls,
        reports: List[DocumentReport],
        failed_files: Optional[List[FailedFile]] = None,
    ) -> "CheckSummary":
        """ドキュメント毎の結果からサマリーを集計する."""
        return cls(
            files_checked=len(reports),
            total_diagrams=sum(r.total_blocks for r in reports),
            total_valid=sum(r.valid_count for r in reports),
            total_invalid=sum(r.invalid_count for r in reports),
            files_with_errors=sum(1 for r in reports if not r.passed),
            total_time=sum(r.total_time for r in reports),
            files=list(reports),
            failed_files=list(failed_files or []),
        )

    @property
    def passed(self) -> bool:
        return self.total_invalid == 0 and not self.failed_files

    def to_dict(self) -> dict:
        """機械可読なJSON互換の辞書を返す."""
        return self.model_dump(mode="json", by_alias=True)
