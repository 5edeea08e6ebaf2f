"""
MCPツールの入出力スキーマ定義
"""
from typing import List
from datetime import datetime
from pydantic import BaseModel, Field


class CheckContentRequest(BaseModel):
    """mermaid_checkツールのリクエストパラメータ"""
    content: str = Field(..., description="Markdown形式の文字列")
    source_name: str = Field("<content>", description="レポートに表示するソース名")


class CheckFilesRequest(BaseModel):
    """mermaid_check_filesツールのリクエストパラメータ"""
    paths: List[str] = Field(..., min_length=1, description="ファイルパスまたはglobパターンのリスト")


class ErrorInfo(BaseModel):
    """エラー詳細情報"""
    code: str = Field(..., description="エラーコード")
    message: str = Field(..., description="エラーの概要メッセージ")
    details: str = Field("", description="エラーの詳細説明")
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat(), description="エラー発生日時")


class ErrorResponse(BaseModel):
    """失敗時のレスポンス"""
    success: bool = Field(False, description="常にFalse")
    error: ErrorInfo = Field(..., description="エラー詳細情報")
