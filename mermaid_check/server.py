"""mermaid-check MCPサーバー実装."""

import asyncio
import json

from mcp.server import Server
from mcp.types import Tool, TextContent
import mcp.server.stdio

from mermaid_check.tools import validate_mermaid
from mermaid_check.validators.mermaid_validator import shutdown_validator


# サーバーインスタンス
server = Server("mermaid-check")


@server.list_tools()
async def list_tools() -> list[Tool]:
    """
    利用可能なMCPツールの一覧を返す.

    Returns:
        ツール定義のリスト
    """
    return [Tool(**definition) for definition in validate_mermaid.TOOL_DEFINITIONS]


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    """
    MCPツールを実行する.

    Args:
        name: ツール名
        arguments: ツール引数

    Returns:
        実行結果（JSON文字列）
    """
    if name == "mermaid_check":
        result = await validate_mermaid.validate_mermaid(arguments or {})
    elif name == "mermaid_check_files":
        result = await validate_mermaid.validate_mermaid_files(arguments or {})
    else:
        return [TextContent(type="text", text=f"Error: Unknown tool '{name}'")]

    return [TextContent(type="text", text=json.dumps(result, indent=2, ensure_ascii=False))]


async def run_server():
    """MCPサーバーを起動する."""
    try:
        async with mcp.server.stdio.stdio_server() as (read_stream, write_stream):
            await server.run(
                read_stream,
                write_stream,
                server.create_initialization_options()
            )
    finally:
        await shutdown_validator()


def main():
    """エントリーポイント."""
    asyncio.run(run_server())


if __name__ == "__main__":
    main()
