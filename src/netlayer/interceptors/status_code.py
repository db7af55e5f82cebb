"""Status-code validation stage."""

from __future__ import annotations

from netlayer.core.endpoint_request import EndpointRequest
from netlayer.core.errors import NoStatusCode, UnacceptableStatusCode
from netlayer.types.models import Response, WireRequest


class StatusCodeProcessor:
    """Rejects responses whose status lies outside the endpoint's range.

    An endpoint without a range, or with an empty one, accepts any status.
    """

    async def process(
        self,
        response: Response,
        request: WireRequest,
        endpoint_request: EndpointRequest,
    ) -> Response:
        """Validate the response status.

        Raises:
            NoStatusCode: If the response carries no HTTP status
            UnacceptableStatusCode: If the status is outside the accepted range
        """
        if response.status_code is None:
            raise NoStatusCode(response)

        acceptable = endpoint_request.endpoint.acceptable_status_codes
        if acceptable is None or acceptable.is_empty:
            return response
        if response.status_code not in acceptable:
            raise UnacceptableStatusCode(response.status_code, acceptable, response)
        return response
