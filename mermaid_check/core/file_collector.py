"""チェック対象Markdownファイルの収集."""

import glob
from pathlib import Path
from typing import List, Optional, Union


class InputNotFoundError(Exception):
    """指定されたパスやパターンに一致する入力が存在しないエラー."""
    pass


MARKDOWN_SUFFIX = ".md"


def collect_markdown_files(
    target: Optional[str] = None,
    directory: Optional[Union[str, Path]] = None,
    recursive: bool = False,
) -> List[Path]:
    """
    チェック対象のファイル一覧を返す.

    - directory指定時: ディレクトリ直下（recursive時は配下全て）の*.md
    - それ以外: targetを既存ファイルのパス、またはglobパターンとして解決

    Args:
        target: ファイルパスまたはglobパターン
        directory: ディレクトリパス
        recursive: ディレクトリを再帰的に探索するか

    Returns:
        重複を除きソートした絶対パスのリスト

    Raises:
        InputNotFoundError: パスが存在しない、または一致するファイルがない場合
    """
    if directory is not None:
        dir_path = Path(directory)
        if not dir_path.is_dir():
            raise InputNotFoundError(f"Directory not found: {directory}")
        pattern = f"**/*{MARKDOWN_SUFFIX}" if recursive else f"*{MARKDOWN_SUFFIX}"
        files = [p for p in dir_path.glob(pattern) if p.is_file()]
        if not files:
            raise InputNotFoundError(f"No Markdown files found in {directory}")
        return sorted({p.resolve() for p in files})

    if not target:
        raise InputNotFoundError("No input path given")

    path = Path(target)
    if path.is_file():
        return [path.resolve()]

    if not _has_glob_magic(target):
        raise InputNotFoundError(f"File not found: {target}")

    files = [Path(p) for p in glob.glob(target, recursive=True) if Path(p).is_file()]
    if not files:
        raise InputNotFoundError(f"No Markdown files matched: {target}")
    return sorted({p.resolve() for p in files})


def is_single_file(target: Optional[str]) -> bool:
    """targetが既存の単一ファイルを指しているか."""
    return bool(target) and not _has_glob_magic(target) and Path(target).is_file()


def _has_glob_magic(pattern: str) -> bool:
    return any(ch in pattern for ch in "*?[")
