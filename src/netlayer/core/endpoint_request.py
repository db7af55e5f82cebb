"""Per-call context wrapping an endpoint descriptor."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from netlayer.core.endpoint import Endpoint
from netlayer.core.request_builder import endpoint_identifier


def make_session_id(now: datetime | None = None) -> str:
    """Return a readable, sortable session id such as ``20230104_161529``.

    Args:
        now: Moment to format (defaults to the current local time)
    """
    return (now or datetime.now()).strftime("%Y%m%d_%H%M%S")


@dataclass(slots=True, frozen=True)
class EndpointRequest:
    """An endpoint plus the identifiers of one logical call.

    The ``id`` is unique per call and is reused by every retry of that call,
    so retry state and debug captures correlate across attempts.
    """

    endpoint: Endpoint
    session_id: str
    id: str = field(default="")

    def __post_init__(self) -> None:
        if not self.id:
            unique = f"{self.identifier}_{time.time():.6f}_{uuid.uuid4().hex[:8]}"
            object.__setattr__(self, "id", unique)

    @property
    def identifier(self) -> str:
        """Identifier shared by all calls to the same logical endpoint."""
        return endpoint_identifier(self.endpoint)
