import os
from typing import Any

import pytest

from ember.ember_codegen import CodeGen, Session
from ember.ember_driver import Driver
from ember.ember_ir import IRModule

# Monkeypatch coverage to bypass teardown crash in act/docker
if os.getenv("COVERAGE_PROCESS_START"):
    import coverage

    coverage.process_startup()

    import coverage.collector

    def safe_stop(self: Any) -> None:
        if self in getattr(self, "_collectors", []):
            self._collectors.remove(self)

    coverage.collector.Collector.stop = safe_stop


@pytest.fixture  # type: ignore[misc]
def session() -> Session:
    return Session(IRModule("test"))


@pytest.fixture  # type: ignore[misc]
def codegen(session: Session) -> CodeGen:
    return CodeGen(session)


@pytest.fixture  # type: ignore[misc]
def driver() -> Driver:
    return Driver()
