"""コマンドラインインターフェースのテスト."""

import json

import pytest

from conftest import ProviderSpy
from mermaid_check.cli import main
from mermaid_check.validators.mermaid_runtime import MermaidSetupError


VALID_DOC = "# Doc\n\n```mermaid\nflowchart TD\nA-->B\n```\n"
INVALID_DOC = "# Doc\n\n```mermaid\nsequenceDiagram\n    Alice->>>Bob: Hi\n```\n"


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    """一時ディレクトリをカレントディレクトリにする."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_no_arguments_prints_usage(workdir, capsys):
    """引数なしの場合は使い方を表示して2で終了すること."""
    assert main([]) == 2
    assert "usage: mermaid-check" in capsys.readouterr().out


def test_help_exits_with_error_code(workdir, capsys):
    """--helpでも使い方を表示して2で終了すること."""
    assert main(["--help"]) == 2
    assert "exit codes:" in capsys.readouterr().out


def test_missing_file(workdir, provider, capsys):
    """存在しないファイルは2で終了すること."""
    assert main(["missing.md"], validator_provider=provider) == 2
    assert "File not found: missing.md" in capsys.readouterr().err
    assert provider.calls == 0


def test_no_files_matched(workdir, provider, capsys):
    """globに一致するファイルがない場合は2で終了すること."""
    assert main(["docs/*.md"], validator_provider=provider) == 2
    assert "No Markdown files matched" in capsys.readouterr().err


def test_document_without_diagrams(workdir, provider, capsys):
    """ダイアグラムがない場合は0で終了すること."""
    (workdir / "plain.md").write_text("# Nothing\n", encoding="utf-8")

    assert main(["plain.md"], validator_provider=provider) == 0
    assert "No Mermaid diagrams found." in capsys.readouterr().out
    assert provider.calls == 0


def test_valid_document(workdir, provider, capsys):
    """全て有効な場合は0で終了し、結果を表示すること."""
    (workdir / "ok.md").write_text(VALID_DOC, encoding="utf-8")

    assert main(["ok.md"], validator_provider=provider) == 0
    out = capsys.readouterr().out
    assert "ok.md - Passed" in out
    assert "Diagrams: 1/1 valid" in out
    assert "[Line 4]" in out


def test_invalid_document(workdir, provider, capsys):
    """無効なブロックがある場合は1で終了し、エラーの1行目を表示すること."""
    (workdir / "bad.md").write_text(INVALID_DOC, encoding="utf-8")

    assert main(["bad.md"], validator_provider=provider) == 1
    out = capsys.readouterr().out
    assert "bad.md - Failed" in out
    assert "Error: Parse error on line 2:" in out
    assert "1 diagram(s) failed validation" in out


def test_quiet_single_file_prints_json(workdir, provider, capsys):
    """単一ファイルで--quietの場合はJSONを出力すること."""
    (workdir / "bad.md").write_text(INVALID_DOC, encoding="utf-8")

    assert main(["bad.md", "--quiet"], validator_provider=provider) == 1
    data = json.loads(capsys.readouterr().out)
    assert data["sourceFile"].endswith("bad.md")
    assert data["totalBlocks"] == 1
    assert data["invalidCount"] == 1
    assert data["blocks"][0]["diagramType"] == "sequence"
    assert data["blocks"][0]["fileName"] == "bad_block0_sequence.mmd"


def test_temp_files_removed_by_default(workdir, provider):
    """既定では書き出したブロックファイルを削除すること."""
    (workdir / "ok.md").write_text(VALID_DOC, encoding="utf-8")

    assert main(["ok.md"], validator_provider=provider) == 0
    assert not (workdir / ".mermaid_temp").exists()


def test_keep_temp(workdir, provider):
    """--keep-tempの場合はブロックファイルを残すこと."""
    (workdir / "ok.md").write_text(VALID_DOC, encoding="utf-8")

    assert main(["ok.md", "--keep-temp", "--output-dir", "blocks"], validator_provider=provider) == 0
    assert (workdir / "blocks" / "ok_block0_flowchart.mmd").read_text(encoding="utf-8") == "flowchart TD\nA-->B"


def test_directory_mode(workdir, provider, capsys):
    """--dirでディレクトリ内のMarkdownをまとめてチェックすること."""
    docs = workdir / "docs"
    (docs / "nested").mkdir(parents=True)
    (docs / "a.md").write_text(VALID_DOC, encoding="utf-8")
    (docs / "b.md").write_text(VALID_DOC, encoding="utf-8")
    (docs / "nested" / "c.md").write_text(INVALID_DOC, encoding="utf-8")

    assert main(["--dir", "docs"], validator_provider=provider) == 0
    out = capsys.readouterr().out
    assert "Files checked:     2" in out

    assert main(["--dir", "docs", "--recursive"], validator_provider=provider) == 1
    out = capsys.readouterr().out
    assert "Files checked:     3" in out
    assert "Files with errors: 1" in out


def test_glob_json_summary(workdir, provider, capsys):
    """globと--jsonでサマリーをJSON出力すること."""
    (workdir / "a.md").write_text(VALID_DOC, encoding="utf-8")
    (workdir / "b.md").write_text(INVALID_DOC, encoding="utf-8")

    assert main(["*.md", "--json"], validator_provider=provider) == 1
    data = json.loads(capsys.readouterr().out)
    assert data["filesChecked"] == 2
    assert data["totalDiagrams"] == 2
    assert data["totalValid"] == 1
    assert data["totalInvalid"] == 1
    assert data["filesWithErrors"] == 1
    assert [f["invalidCount"] for f in data["files"]] == [0, 1]


def test_quiet_multi_file_hides_block_lines(workdir, provider, capsys):
    """複数ファイルで--quietの場合はブロック毎の行を出力しないこと."""
    (workdir / "a.md").write_text(VALID_DOC, encoding="utf-8")
    (workdir / "b.md").write_text(VALID_DOC, encoding="utf-8")

    assert main(["*.md", "-q"], validator_provider=provider) == 0
    out = capsys.readouterr().out
    assert "Diagrams: 1/1 valid" in out
    assert "[Line" not in out


def test_setup_error_exit_code(workdir, capsys):
    """Mermaid実行環境がない場合は2で終了すること."""
    (workdir / "ok.md").write_text(VALID_DOC, encoding="utf-8")
    provider = ProviderSpy(error=MermaidSetupError("Could not find the 'mermaid' and 'jsdom' Node.js packages."))

    assert main(["ok.md"], validator_provider=provider) == 2
    err = capsys.readouterr().err
    assert "mermaid could not be loaded" in err
    assert not (workdir / ".mermaid_temp").exists()


def test_missing_config_file(workdir, provider, capsys):
    """存在しない設定ファイルを指定した場合は2で終了すること."""
    (workdir / "ok.md").write_text(VALID_DOC, encoding="utf-8")

    assert main(["ok.md", "--config", "nope.yaml"], validator_provider=provider) == 2
    assert "Config file not found" in capsys.readouterr().err


def test_keep_temp_with_same_named_documents(workdir, provider, capsys):
    """同名のドキュメントを再帰的にチェックしても各ブロックファイルが残ること."""
    for sub, edge in (("a", "A-->B"), ("b", "X-->Y")):
        (workdir / "docs" / sub).mkdir(parents=True)
        (workdir / "docs" / sub / "README.md").write_text(
            f"```mermaid\ngraph TD\n{edge}\n```\n", encoding="utf-8"
        )

    args = ["--dir", "docs", "--recursive", "--json", "--keep-temp", "--output-dir", "out"]
    assert main(args, validator_provider=provider) == 0
    data = json.loads(capsys.readouterr().out)

    names = [f["blocks"][0]["fileName"] for f in data["files"]]
    assert len(set(names)) == 2
    contents = {(workdir / "out" / name).read_text(encoding="utf-8") for name in names}
    assert contents == {"graph TD\nA-->B", "graph TD\nX-->Y"}
