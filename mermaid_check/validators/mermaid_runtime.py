"""Mermaid実行環境（Node.js + mermaid + jsdom）の解決と準備."""

import json
import logging
import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional

from mermaid_check.core.config import CheckerConfig


logger = logging.getLogger(__name__)


class MermaidSetupError(Exception):
    """Mermaid実行環境を準備できないエラー（実行全体を中止する）."""
    pass


# ワーカーが読み込むnpmパッケージ
REQUIRED_PACKAGES = ("mermaid", "jsdom")

INSTALL_HINT = (
    "Install them in your project with: npm install mermaid jsdom\n"
    "or globally with: npm install -g mermaid jsdom\n"
    "or point MERMAID_CHECK_NODE_MODULES at a node_modules directory that contains both."
)

# パッケージ同梱のnode_modules（ソースチェックアウトで npm install した場合）
PACKAGE_ROOT = Path(__file__).resolve().parent.parent.parent

BRIDGE_SCRIPT_NAME = "mermaid_bridge.mjs"

# Nodeワーカー本体.
# 起動時にjsdom環境とDOMPurifyのダミーを用意してからmermaidを初期化し、
# 標準入力からJSON Lines形式で {id, code} を受け取り {id, valid, error} を返す。
BRIDGE_SCRIPT = """\
import readline from 'node:readline';

const emit = (payload) => process.stdout.write(JSON.stringify(payload) + '\\n');

let mermaid;
try {
    const { JSDOM } = await import('jsdom');
    const dom = new JSDOM('<!DOCTYPE html><html><body></body></html>', {
        url: 'http://localhost',
        pretendToBeVisual: true,
    });

    globalThis.window = dom.window;
    globalThis.document = dom.window.document;
    globalThis.self = globalThis;
    globalThis.Element = dom.window.Element;
    globalThis.HTMLElement = dom.window.HTMLElement;
    globalThis.Node = dom.window.Node;
    Object.defineProperty(globalThis, 'navigator', {
        value: dom.window.navigator,
        writable: false,
        configurable: true,
    });

    // mermaidの読み込み前に設定しておく必要がある
    const purify = {
        sanitize: (html) => String(html),
        addHook: () => {},
        removeHook: () => {},
        removeAllHooks: () => {},
    };
    dom.window.DOMPurify = purify;
    globalThis.DOMPurify = purify;

    ({ default: mermaid } = await import('mermaid'));
    mermaid.initialize({
        startOnLoad: false,
        suppressErrorRendering: true,
        logLevel: 'error',
        securityLevel: 'loose',
    });
} catch (error) {
    emit({ fatal: (error && error.message) || String(error) });
    process.exit(1);
}

emit({ ready: true });

const rl = readline.createInterface({ input: process.stdin, crlfDelay: Infinity });
for await (const line of rl) {
    if (!line.trim()) {
        continue;
    }
    let request;
    try {
        request = JSON.parse(line);
    } catch (error) {
        continue;
    }
    try {
        await mermaid.parse(request.code);
        emit({ id: request.id, valid: true, error: null });
    } catch (error) {
        emit({ id: request.id, valid: false, error: (error && error.message) || String(error) });
    }
}
"""


def has_required_packages(node_modules: Path) -> bool:
    """node_modulesにmermaidとjsdomが両方含まれているか."""
    return all((node_modules / name / "package.json").is_file() for name in REQUIRED_PACKAGES)


# ---------------------------------------------------------------------------
# node_modules探索戦略（先頭から順に試す）
# ---------------------------------------------------------------------------

def _configured_node_modules(config: CheckerConfig, node: str) -> Iterator[Path]:
    if config.node_modules:
        yield Path(config.node_modules).expanduser()


def _ancestor_node_modules(config: CheckerConfig, node: str) -> Iterator[Path]:
    cwd = Path.cwd()
    for directory in (cwd, *cwd.parents):
        yield directory / "node_modules"


def _package_node_modules(config: CheckerConfig, node: str) -> Iterator[Path]:
    yield PACKAGE_ROOT / "node_modules"


def _npm_global_node_modules(config: CheckerConfig, node: str) -> Iterator[Path]:
    npm = shutil.which("npm")
    if not npm:
        return
    try:
        result = subprocess.run(
            [npm, "root", "-g"],
            capture_output=True,
            text=True,
            timeout=15,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("npm root -g failed: %s", e)
        return
    if result.returncode == 0 and result.stdout.strip():
        yield Path(result.stdout.strip())


def _nvm_node_modules(config: CheckerConfig, node: str) -> Iterator[Path]:
    nvm_dir = os.environ.get("NVM_DIR") or str(Path.home() / ".nvm")
    version = get_node_version(node)
    if version:
        yield Path(nvm_dir) / "versions" / "node" / version / "lib" / "node_modules"


ResolutionStrategy = Callable[[CheckerConfig, str], Iterable[Path]]

CANDIDATE_STRATEGIES: List[ResolutionStrategy] = [
    _configured_node_modules,
    _ancestor_node_modules,
    _package_node_modules,
    _npm_global_node_modules,
    _nvm_node_modules,
]


def get_node_version(node: str) -> Optional[str]:
    """
    Node.jsのバージョンを取得する（同期版）.

    Returns:
        "v20.11.0"のようなバージョン文字列、取得失敗時はNone
    """
    try:
        result = subprocess.run(
            [node, "--version"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (OSError, subprocess.TimeoutExpired):
        return None
    if result.returncode == 0:
        return result.stdout.strip() or None
    return None


def find_node(config: CheckerConfig) -> str:
    """
    Node.js実行ファイルを探す.

    Raises:
        MermaidSetupError: 見つからない場合
    """
    if config.node_path:
        candidate = shutil.which(config.node_path) or config.node_path
        if Path(candidate).is_file():
            return candidate
        raise MermaidSetupError(
            f"Node.js executable not found: {config.node_path}. "
            "Check MERMAID_CHECK_NODE or the node_path setting."
        )

    node = shutil.which("node")
    if not node:
        raise MermaidSetupError(
            "Node.js is not installed or not on PATH. "
            "Please install Node.js 18 or later (https://nodejs.org/)."
        )
    return node


def find_node_modules(
    config: CheckerConfig,
    node: str,
    strategies: Optional[List[ResolutionStrategy]] = None,
) -> Path:
    """
    mermaidとjsdomを含むnode_modulesを候補戦略の順に探す.

    Args:
        config: 設定
        node: Node.js実行ファイルのパス
        strategies: 探索戦略のリスト（省略時はCANDIDATE_STRATEGIES）

    Returns:
        見つかったnode_modulesディレクトリ

    Raises:
        MermaidSetupError: どの候補にも見つからない場合
    """
    searched: List[str] = []
    for strategy in strategies or CANDIDATE_STRATEGIES:
        for candidate in strategy(config, node):
            searched.append(str(candidate))
            if has_required_packages(candidate):
                logger.debug("Resolved node_modules via %s: %s", strategy.__name__, candidate)
                return candidate
            logger.debug("No mermaid/jsdom in %s (%s)", candidate, strategy.__name__)

    raise MermaidSetupError(
        "Could not find the 'mermaid' and 'jsdom' Node.js packages.\n"
        f"Searched: {', '.join(searched) or '(no candidates)'}\n"
        f"{INSTALL_HINT}"
    )


def read_package_version(node_modules: Path, package: str) -> Optional[str]:
    """node_modules内のパッケージのバージョンを読む."""
    try:
        with open(node_modules / package / "package.json", "r", encoding="utf-8") as f:
            return json.load(f).get("version")
    except (OSError, ValueError):
        return None


class MermaidRuntime:
    """
    解決済みのMermaid実行環境.

    ブリッジスクリプトと、解決したnode_modulesへのリンクを置いた
    作業ディレクトリを所有する。ESMのパッケージ解決はスクリプトの
    場所を基準に行われるため、リンク経由でmermaidとjsdomを読み込ませる。
    """

    def __init__(self, node: str, node_modules: Path):
        self.node = node
        self.node_modules = node_modules
        self.mermaid_version = read_package_version(node_modules, "mermaid")
        self.workspace: Optional[Path] = None

    @classmethod
    def resolve(cls, config: CheckerConfig) -> "MermaidRuntime":
        """
        設定からNode.jsとnode_modulesを解決する.

        Raises:
            MermaidSetupError: Node.jsまたは必要なパッケージが見つからない場合
        """
        node = find_node(config)
        node_modules = find_node_modules(config, node)
        runtime = cls(node, node_modules)
        logger.info(
            "Using node %s with mermaid %s from %s",
            node, runtime.mermaid_version or "(unknown version)", node_modules,
        )
        return runtime

    @property
    def bridge_script(self) -> Path:
        if self.workspace is None:
            raise MermaidSetupError("Mermaid runtime workspace has not been prepared")
        return self.workspace / BRIDGE_SCRIPT_NAME

    def prepare(self) -> Path:
        """
        ブリッジスクリプトの作業ディレクトリを用意する.

        Returns:
            ブリッジスクリプトのパス
        """
        if self.workspace is not None:
            return self.bridge_script

        workspace = Path(tempfile.mkdtemp(prefix="mermaid_check_bridge_"))
        try:
            (workspace / "node_modules").symlink_to(self.node_modules, target_is_directory=True)
            (workspace / BRIDGE_SCRIPT_NAME).write_text(BRIDGE_SCRIPT, encoding="utf-8")
        except OSError as e:
            shutil.rmtree(workspace, ignore_errors=True)
            raise MermaidSetupError(f"Failed to prepare the mermaid bridge in {workspace}: {e}") from e

        self.workspace = workspace
        return self.bridge_script

    def cleanup(self) -> None:
        """作業ディレクトリを削除する（エラーは無視）."""
        if self.workspace is not None:
            # リンク先のnode_modulesは辿らない
            link = self.workspace / "node_modules"
            try:
                if link.is_symlink():
                    link.unlink()
            except OSError:
                pass
            shutil.rmtree(self.workspace, ignore_errors=True)
            self.workspace = None
