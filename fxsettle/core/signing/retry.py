"""
Bounded retry around transient signing failures.

Only `SigningBackendUnavailable` is retried. Construction and validation
errors are never transient, and re-signing is safe because nothing on-chain
changes until delivery.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from ..errors import SigningBackendUnavailable
from ..typed_data import TypedDataEnvelope
from .base import SignatureResult, Signer


class RetryingSigner(Signer):
    """Exponential-backoff wrapper around another signer."""

    def __init__(
        self,
        inner: Signer,
        max_attempts: int = 3,
        initial_delay_seconds: float = 1.0,
        max_delay_seconds: float = 30.0,
        exponential_base: float = 2.0,
        logger: Optional[logging.Logger] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.inner = inner
        self.kind = inner.kind
        self.max_attempts = max_attempts
        self.initial_delay_seconds = initial_delay_seconds
        self.max_delay_seconds = max_delay_seconds
        self.exponential_base = exponential_base
        self.logger = logger or logging.getLogger(__name__)

    def __repr__(self) -> str:
        return f"RetryingSigner({self.inner!r}, max_attempts={self.max_attempts})"

    def get_delay(self, attempt: int) -> float:
        """Calculate delay before retrying after the given (zero-based) attempt."""
        return min(
            self.initial_delay_seconds * (self.exponential_base ** attempt),
            self.max_delay_seconds,
        )

    async def sign(self, envelope: TypedDataEnvelope) -> SignatureResult:
        for attempt in range(self.max_attempts):
            try:
                return await self.inner.sign(envelope)
            except SigningBackendUnavailable as e:
                if attempt >= self.max_attempts - 1:
                    self.logger.error(f"Signing failed after {self.max_attempts} attempts: {e}")
                    raise

                delay = self.get_delay(attempt)
                self.logger.warning(
                    f"Attempt {attempt + 1}/{self.max_attempts} failed: {e}. "
                    f"Retrying in {delay:.1f}s"
                )
                await asyncio.sleep(delay)

        raise RuntimeError("All retry attempts exhausted")
