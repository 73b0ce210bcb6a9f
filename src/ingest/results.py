"""Typed outcomes for best-effort scrape steps."""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ScrapeOutcome(str, Enum):
    """How a scrape step ended."""

    OK = "ok"  # Step completed and produced data
    PARTIAL = "partial"  # Step degraded (timeout, missing element) but produced what it could
    FAILED = "failed"  # Step produced nothing; caller continues with empty data


@dataclass
class ScrapeResult(Generic[T]):
    """Result of one scrape step with its typed outcome."""

    outcome: ScrapeOutcome
    data: Optional[T] = None
    url: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome is not ScrapeOutcome.FAILED

    @classmethod
    def success(cls, data: T, url: Optional[str] = None) -> "ScrapeResult[T]":
        return cls(ScrapeOutcome.OK, data=data, url=url)

    @classmethod
    def partial(cls, data: T, url: Optional[str] = None, error: Optional[str] = None) -> "ScrapeResult[T]":
        return cls(ScrapeOutcome.PARTIAL, data=data, url=url, error=error)

    @classmethod
    def failure(cls, error: str, url: Optional[str] = None) -> "ScrapeResult[T]":
        return cls(ScrapeOutcome.FAILED, url=url, error=error)
