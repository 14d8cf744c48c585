"""Errors raised by the sub-agent worker pool."""

from __future__ import annotations


class AgentError(Exception):
    pass


class PoolStoppedError(AgentError):
    def __init__(self) -> None:
        super().__init__("agent pool is shut down")


class ConcurrencyLimitError(AgentError):
    def __init__(self, limit: int) -> None:
        super().__init__(f"concurrent sub-agent limit reached ({limit})")
        self.limit = limit


class WorkerNotFoundError(AgentError):
    def __init__(self, worker_id: str) -> None:
        super().__init__(f"sub-agent not found: {worker_id}")
        self.worker_id = worker_id


class WorkerTimeoutError(AgentError):
    def __init__(self, worker_id: str, timeout: float) -> None:
        super().__init__(f"timed out waiting for sub-agent {worker_id} ({timeout:g}s)")
        self.worker_id = worker_id
        self.timeout = timeout


class WorkerFailedError(AgentError):
    def __init__(self, worker_id: str, reason: str) -> None:
        super().__init__(f"sub-agent {worker_id} failed: {reason}")
        self.worker_id = worker_id
        self.reason = reason
