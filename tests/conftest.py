"""
Shared pytest fixtures for the Guild Ledger test suite.

This module provides fixtures that are automatically available to all test files:
- Temporary storage files and record stores
- A controllable clock and a scripted random source
- Event notifiers with a recorder attached
- A fully initialized Economy over a temporary storage file

Every fixture is function-scoped so no test ever sees another test's document.
"""

from collections.abc import Generator
from pathlib import Path

import pytest

from guild_ledger.config import EconomyConfig
from guild_ledger.economy import Economy
from guild_ledger.events import get_all_event_types
from guild_ledger.notifier import EconomyEvent, EventNotifier
from guild_ledger.storage import RecordStore

# Tuesday 2023-11-14 22:13:20 UTC
START_MS = 1_700_000_000_000


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, now: int = START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class ScriptedRandom:
    """Random source returning a fixed value (or a sequence of values)."""

    def __init__(self, *values: float):
        self.values = list(values) or [0.0]
        self.calls = 0

    def __call__(self) -> float:
        value = self.values[min(self.calls, len(self.values) - 1)]
        self.calls += 1
        return value


class EventRecorder:
    """Collects every event a notifier emits."""

    def __init__(self, notifier: EventNotifier):
        self.events: list[EconomyEvent] = []
        for event_type in get_all_event_types():
            notifier.on(event_type, self.events.append)

    def types(self) -> list[str]:
        return [event.type for event in self.events]

    def of(self, event_type: str) -> list[EconomyEvent]:
        return [event for event in self.events if event.type == event_type]


# ============================================================================
# STORAGE FIXTURES
# ============================================================================


@pytest.fixture
def storage_path(tmp_path: Path) -> Path:
    """Location of a storage file that does not exist yet."""
    return tmp_path / "storage.json"


@pytest.fixture
def store(storage_path: Path) -> RecordStore:
    return RecordStore(storage_path)


# ============================================================================
# ENGINE FIXTURES
# ============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rng() -> ScriptedRandom:
    return ScriptedRandom(0.0)


@pytest.fixture
def notifier() -> EventNotifier:
    return EventNotifier()


@pytest.fixture
def recorder(notifier: EventNotifier) -> EventRecorder:
    return EventRecorder(notifier)


@pytest.fixture
def economy_config(storage_path: Path) -> EconomyConfig:
    """Default configuration pointed at the temporary storage file."""
    return EconomyConfig.from_options({"storagePath": str(storage_path), "dateLocale": "en"})


@pytest.fixture
def economy(
    economy_config: EconomyConfig,
    notifier: EventNotifier,
    clock: FakeClock,
    rng: ScriptedRandom,
) -> Generator[Economy, None, None]:
    """
    Initialized Economy over a temporary storage file.

    Yields:
        Economy with ready=True; the storage watcher is stopped afterwards.
    """
    eco = Economy(economy_config, notifier=notifier, clock=clock, rng=rng, sleep=lambda _: None)
    eco.init()
    yield eco
    eco.close()
