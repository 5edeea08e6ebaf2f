"""Mermaidコードブロック抽出とダイアグラムタイプ推定."""

import re
from typing import Iterable, List, Optional, Tuple

from mermaid_check.models.validation_schemas import MermaidBlock


class MermaidExtractor:
    """Markdown内のフェンス付きMermaidコードブロックを抽出する."""

    # 標準Markdown記法の開始フェンス
    DEFAULT_OPEN_MARKERS = ("```mermaid",)
    CLOSE_MARKER = "```"

    # 先頭キーワード → 正規化したダイアグラムタイプ
    DIAGRAM_TYPE_MAP = {
        "graph": "flowchart",
        "sequenceDiagram": "sequence",
        "classDiagram": "class",
        "stateDiagram": "state",
        "erDiagram": "er",
        "journey": "journey-map",
    }

    # ASCIIの単語文字のみ（全角文字などは含めない）
    _LEADING_WORD = re.compile(r"\w+", re.ASCII)

    def __init__(self, open_markers: Optional[Iterable[str]] = None):
        """
        Args:
            open_markers: ブロック開始とみなすフェンス行（前後の空白除去後に完全一致）
        """
        markers = tuple(open_markers) if open_markers else self.DEFAULT_OPEN_MARKERS
        self.open_markers = frozenset(marker.strip() for marker in markers)

    def extract_mermaid_blocks(self, content: str) -> List[MermaidBlock]:
        """
        Markdownから全てのMermaidコードブロックを抽出する.

        閉じられないまま文書末尾に達したブロックは黙って破棄する。

        Args:
            content: Markdown形式のコンテンツ

        Returns:
            抽出順に並んだMermaidBlockのリスト
        """
        blocks, _ = self._scan(content)
        return blocks

    def detect_unclosed_block(self, content: str) -> Optional[int]:
        """
        閉じられていない末尾のブロックを検出する.

        Returns:
            未閉鎖の開始フェンスの行番号（1始まり）、なければNone
        """
        _, unclosed_line = self._scan(content)
        return unclosed_line

    def _scan(self, content: str) -> Tuple[List[MermaidBlock], Optional[int]]:
        blocks: List[MermaidBlock] = []
        in_block = False
        open_line = 0
        code_lines: List[str] = []

        for line_num, line in enumerate(content.split("\n"), start=1):
            stripped = line.strip()

            if not in_block:
                if stripped in self.open_markers:
                    in_block = True
                    open_line = line_num
                    code_lines = []
                continue

            if stripped == self.CLOSE_MARKER:
                code = "\n".join(code_lines)
                blocks.append(MermaidBlock(
                    code=code,
                    line_start=open_line + 1,
                    line_end=line_num,
                    index=len(blocks),
                    diagram_type=self.detect_diagram_type(code),
                ))
                in_block = False
            else:
                # 入れ子風のフェンスも含めてそのまま本文として扱う
                code_lines.append(line)

        return blocks, (open_line if in_block else None)

    @classmethod
    def detect_diagram_type(cls, code: str) -> str:
        """
        コード先頭のキーワードからダイアグラムタイプを推定する.

        先頭の空白は許容しない。未知のキーワードはそのまま返す。

        Args:
            code: Mermaidコード

        Returns:
            ダイアグラムタイプ、先頭に単語がない場合は"unknown"
        """
        match = cls._LEADING_WORD.match(code)
        if not match:
            return "unknown"
        keyword = match.group(0)
        return cls.DIAGRAM_TYPE_MAP.get(keyword, keyword)


def extract_mermaid_blocks(content: str) -> List[MermaidBlock]:
    """デフォルト設定のMermaidExtractorでブロックを抽出する."""
    return MermaidExtractor().extract_mermaid_blocks(content)
