"""テスト共通のフィクスチャ."""

import asyncio
from typing import Dict, List, Optional, Tuple

import pytest

from mermaid_check.models.validation_schemas import ValidationResult


# この記号を含むコードは構文エラーとして扱う
INVALID_TOKENS: Tuple[str, ...] = ("->>>", "INVALID")


class FakeValidator:
    """Node.jsを使わずにvalidate()の契約だけを再現するバリデータ."""

    def __init__(self, delays: Optional[Dict[str, float]] = None):
        self.calls: List[str] = []
        self.delays = delays or {}

    async def validate(self, code: str) -> ValidationResult:
        self.calls.append(code)
        for token, delay in self.delays.items():
            if token in code:
                await asyncio.sleep(delay)
        if any(token in code for token in INVALID_TOKENS):
            return ValidationResult(
                valid=False,
                error=f"Parse error on line 2:\n{code.splitlines()[-1]}\n---^",
                elapsed_time=2.5,
            )
        return ValidationResult(valid=True, error=None, elapsed_time=1.0)


class ProviderSpy:
    """バリデータの生成回数を記録するプロバイダ."""

    def __init__(self, validator=None, error: Optional[Exception] = None):
        self.validator = validator or FakeValidator()
        self.error = error
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.validator


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch):
    """環境変数による設定の上書きを無効化する."""
    for name in ("MERMAID_CHECK_TIMEOUT", "MERMAID_CHECK_NODE", "MERMAID_CHECK_NODE_MODULES"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fake_validator():
    return FakeValidator()


@pytest.fixture
def provider(fake_validator):
    return ProviderSpy(fake_validator)
