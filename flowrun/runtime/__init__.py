"""Runtime bookkeeping for workflow runs."""

from flowrun.runtime.run_log import LogEntry, LogLevel, RunLog

__all__ = ["LogEntry", "LogLevel", "RunLog"]
