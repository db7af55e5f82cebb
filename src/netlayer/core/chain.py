"""Ordered folds over request adapters, response processors and error processors.

Each stage receives the previous stage's output. A stage that raises stops
the fold; later stages never see the input of a failed stage.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from netlayer.core.endpoint_request import EndpointRequest
from netlayer.types.models import Response, WireRequest
from netlayer.types.protocols import ErrorProcessor, RequestAdapter, ResponseProcessor

logger = logging.getLogger(__name__)


async def adapt_request(
    adapters: Sequence[RequestAdapter],
    request: WireRequest,
    endpoint_request: EndpointRequest,
) -> WireRequest:
    """Run ``request`` through every adapter in registration order."""
    for adapter in adapters:
        request = await adapter.adapt(request, endpoint_request)
    return request


async def process_response(
    processors: Sequence[ResponseProcessor],
    response: Response,
    request: WireRequest,
    endpoint_request: EndpointRequest,
) -> Response:
    """Run ``response`` through every processor in registration order."""
    for processor in processors:
        response = await processor.process(response, request, endpoint_request)
    return response


async def process_error(
    processors: Sequence[ErrorProcessor],
    error: Exception,
    endpoint_request: EndpointRequest,
) -> Exception:
    """Run ``error`` through every error processor in registration order.

    Returns:
        The error as translated by the last processor
    """
    for processor in processors:
        error = await processor.process_error(error, endpoint_request)
    return error
