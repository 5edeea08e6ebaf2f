"""mermaid-check: Markdown内のMermaidダイアグラムの構文チェッカー."""

__version__ = "0.1.0"
