import pytest
from typing import List, Tuple

from coinfeed.utils.logger import LogObserver, PipelineLogger

class RecordingObserver(LogObserver):
    """Keeps every log event in memory so tests can assert on them."""

    def __init__(self) -> None:
        self.events: List[Tuple[str, str]] = []

    def update(self, level: str, message: str) -> None:
        self.events.append((level, message))

    def messages(self, level: str) -> List[str]:
        return [message for event_level, message in self.events if event_level == level]

@pytest.fixture
def observer():
    return RecordingObserver()

@pytest.fixture
def logger(observer):
    """
    A PipelineLogger wired to the in-memory observer only (no console, no log file).
    """
    log = PipelineLogger("test")
    log.attach(observer)
    return log
