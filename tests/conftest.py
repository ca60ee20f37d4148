from __future__ import annotations

import sys
from pathlib import Path

# Ensure tests always import the local src tree, not an older installed wheel.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

import pytest  # noqa: E402


class StubProvider:
    """In-memory provider answering commands from a routing table.

    `responses` maps command text to a list of row dicts, None (no primary
    result) or an exception instance to raise. Unknown commands return [].
    Identity lookups can be routed per database with the key
    `(database, command)`.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls: list[tuple[str | None, str]] = []
        self.closed = 0

    async def execute_control_command(self, database, command):
        self.calls.append((database, command))
        if (database, command) in self.responses:
            resp = self.responses[(database, command)]
        else:
            resp = self.responses.get(command, [])
        if isinstance(resp, BaseException):
            raise resp
        return resp

    async def close(self) -> None:
        self.closed += 1

    def commands(self) -> list[str]:
        return [command for _, command in self.calls]


@pytest.fixture
def stub_provider_cls():
    return StubProvider
