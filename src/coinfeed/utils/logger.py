"""
Utility Module: Observer-Based Logging for the Ingestion Client.

Logging is split into a Subject (the logger the pipeline talks to) and a set
of Observers (the destinations). The pipeline never knows where its messages
end up: the console, a log file, or a test double attached at runtime.
"""

import os
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import List, Optional

DEFAULT_LOG_DIR: Path = Path(__file__).resolve().parent.parent.parent.parent / "logs"
LOG_FILENAME = "coinfeed.log"

class LogObserver(ABC):
    """
    The Abstract Blueprint for all Log Observers.

    Any destination for log events (terminal, file, test recorder) implements
    this single method so the Subject can push events without knowing the
    concrete type.
    """

    @abstractmethod
    def update(self, level: str, message: str) -> None:
        """
        Receives the broadcasted log event from the Subject.

        Args:
            level (str): The severity level of the log (e.g., 'INFO', 'ERROR').
            message (str): The fully formatted log message.
        """
        pass

class ConsoleObserver(LogObserver):
    """
    Concrete Observer: Terminal Output with ANSI colour per severity.
    """

    COLORS = {
        "INFO": "\033[94m",    # Blue
        "WARNING": "\033[93m", # Yellow
        "ERROR": "\033[91m",   # Red
        "ENDC": "\033[0m"      # Reset
    }

    def update(self, level: str, message: str) -> None:
        color = self.COLORS.get(level, self.COLORS["ENDC"])
        print(f"{color}[{level}] {message}{self.COLORS['ENDC']}")

class FileObserver(LogObserver):
    """
    Concrete Observer: Persistent File Storage.

    Appends one timestamped line per event, leaving an audit trail of every
    ingestion run (which coins were skipped, which dates exhausted retries).

    Attributes:
        filepath (Path): The absolute path to the target log file.
    """

    def __init__(self, filepath: Path) -> None:
        """
        Initializes the FileObserver and ensures the target directory exists.

        Args:
            filepath (Path): The path where the log file will be stored.
        """
        self.filepath = filepath
        self.filepath.parent.mkdir(parents=True, exist_ok=True)

    def update(self, level: str, message: str) -> None:
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        with open(self.filepath, "a", encoding="utf-8") as file:
            file.write(f"{timestamp} - [{level}] - {message}\n")

class LogSubject(ABC):
    """
    The Abstract Blueprint for the Log Publisher.

    Manages the subscription list and fans every event out to it.

    Attributes:
        _observers (List[LogObserver]): The internal list of subscribed observers.
    """

    def __init__(self) -> None:
        self._observers: List[LogObserver] = []

    def attach(self, observer: LogObserver) -> None:
        """Subscribes a new observer (ignored if already attached)."""
        if observer not in self._observers:
            self._observers.append(observer)

    def detach(self, observer: LogObserver) -> None:
        """Unsubscribes an observer (ignored if not attached)."""
        if observer in self._observers:
            self._observers.remove(observer)

    def notify(self, level: str, message: str) -> None:
        """Broadcasts the log event to all currently attached observers."""
        for observer in self._observers:
            observer.update(level, message)

class PipelineLogger(LogSubject):
    """
    The Concrete Log Publisher.

    Every message is prefixed with the component name (e.g. 'CoinGeckoDataSource')
    so a single shared log file still shows which collaborator spoke.

    Attributes:
        component (str): The name of the component owning this logger.
    """

    def __init__(self, component: str = "") -> None:
        super().__init__()
        self.component = component

    def _format(self, message: str) -> str:
        return f"{self.component} | {message}" if self.component else message

    def info(self, message: str) -> None:
        """Logs an informational message (standard execution flow)."""
        self.notify("INFO", self._format(message))

    def warning(self, message: str) -> None:
        """Logs a warning message (skipped units, missing checkpoints)."""
        self.notify("WARNING", self._format(message))

    def error(self, message: str) -> None:
        """Logs an error message (exhausted retries, failed sends)."""
        self.notify("ERROR", self._format(message))

def get_logger(component: str, log_dir: Optional[Path] = None) -> PipelineLogger:
    """
    Factory Function: Assembles the standard logging system for one component.

    Args:
        component (str): The name printed in front of every message.
        log_dir (Path, optional): Directory for the log file. Falls back to the
            LOG_DIR environment variable, then to '<project root>/logs'.

    Returns:
        PipelineLogger: A logger with the Console and File observers attached.
    """
    logger = PipelineLogger(component)

    if log_dir is None:
        log_dir = Path(os.getenv("LOG_DIR", str(DEFAULT_LOG_DIR)))

    logger.attach(ConsoleObserver())
    logger.attach(FileObserver(log_dir / LOG_FILENAME))

    return logger
