"""一時ファイル・ディレクトリ管理."""

import logging
import tempfile
import shutil
from pathlib import Path
from contextlib import contextmanager
from typing import Dict, Generator, Optional, Union

from mermaid_check.models.validation_schemas import MermaidBlock


logger = logging.getLogger(__name__)


class TempFileManager:
    """一時ファイルとディレクトリの安全な管理を担当するクラス."""

    def __init__(self):
        # ソースファイル → ブロックファイル名の接頭辞
        self._stems: Dict[str, str] = {}

    @contextmanager
    def create_workspace(
        self,
        base_dir: Optional[Union[str, Path]] = None,
        keep: bool = False,
    ) -> Generator[Path, None, None]:
        """
        一時作業ディレクトリを作成するコンテキストマネージャー.

        Args:
            base_dir: 作業ディレクトリのパス（省略時はシステムの一時ディレクトリ配下に作成）
            keep: Trueの場合は終了時に削除しない

        Yields:
            Path: 作業ディレクトリのパス

        Note:
            base_dirが既に存在する場合はその配下に一意なサブディレクトリを作成する。
            keep=Falseの場合、コンテキスト終了時（例外発生時も含む）にディレクトリを削除する。
            削除の失敗は無視する。
        """
        workspace = None
        try:
            if base_dir is None:
                workspace = Path(tempfile.mkdtemp(prefix="mermaid_check_"))
            elif Path(base_dir).exists():
                # 既存ディレクトリは削除対象にしない
                workspace = Path(tempfile.mkdtemp(prefix="mermaid_check_", dir=str(base_dir)))
            else:
                workspace = Path(base_dir)
                workspace.mkdir(parents=True)
            yield workspace
        finally:
            if workspace is not None and not keep:
                self.cleanup(workspace)
            elif workspace is not None:
                logger.info("Keeping temporary files in %s", workspace)

    def cleanup(self, workspace: Path) -> None:
        """作業ディレクトリを削除する（エラーは無視）."""
        if workspace.exists():
            shutil.rmtree(workspace, ignore_errors=True)

    def write_block(self, workspace: Path, source_file: Union[str, Path], block: MermaidBlock) -> str:
        """
        ブロックを.mmdファイルとして書き出す.

        Returns:
            書き出したファイル名（<ドキュメント名>_block<index>_<type>.mmd）

        Note:
            別のディレクトリにある同名のドキュメントは
            <ドキュメント名>-2、-3 ... の接頭辞で区別する。
        """
        file_name = f"{self.document_stem(source_file)}_block{block.index}_{block.diagram_type}.mmd"
        (workspace / file_name).write_text(block.code, encoding="utf-8")
        return file_name

    def document_stem(self, source_file: Union[str, Path]) -> str:
        """ドキュメント毎に一意なブロックファイル名の接頭辞を返す."""
        key = str(source_file)
        if key not in self._stems:
            base = Path(source_file).stem
            used = set(self._stems.values())
            stem, n = base, 1
            while stem in used:
                n += 1
                stem = f"{base}-{n}"
            self._stems[key] = stem
        return self._stems[key]
