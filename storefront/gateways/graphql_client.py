"""Minimal GraphQL-over-HTTP client."""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from storefront.errors import GatewayError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30


class GraphQLError(GatewayError):
    """Raised when a GraphQL request cannot be completed."""


@dataclass
class GraphQLResponse:
    """Decoded GraphQL response body."""

    data: Dict[str, Any] = field(default_factory=dict)
    errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def first_error_message(self) -> Optional[str]:
        if not self.errors:
            return None
        return self.errors[0].get("message")

    @property
    def first_error_code(self) -> Optional[str]:
        if not self.errors:
            return None
        extensions = self.errors[0].get("extensions") or {}
        return extensions.get("code")


class GraphQLClient:
    """
    Blocking GraphQL client built on requests.

    Transport problems (timeouts, connection errors, non-200 status,
    undecodable bodies) raise GraphQLError. GraphQL-level ``errors`` are
    returned to the caller, which decides what they mean.
    """

    def __init__(
        self,
        endpoint: str,
        timeout: int = DEFAULT_TIMEOUT_SECONDS,
        auth_token: Optional[str] = None,
        site_id: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        self.endpoint = endpoint
        self.timeout = timeout
        self.auth_token = auth_token
        self.site_id = site_id
        self._session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        if self.site_id:
            headers["siteid"] = self.site_id
        return headers

    def execute(
        self,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
        operation_name: Optional[str] = None,
    ) -> GraphQLResponse:
        """Send one query or mutation.

        Args:
            query: GraphQL document
            variables: Variables for the document
            operation_name: Operation to run, used in logs

        Returns:
            GraphQLResponse with data and any GraphQL errors

        Raises:
            GraphQLError: If the request fails at the transport level
        """
        if not self.endpoint:
            raise GraphQLError("GraphQL endpoint is not configured")

        payload: Dict[str, Any] = {"query": query, "variables": variables or {}}
        if operation_name:
            payload["operationName"] = operation_name

        try:
            response = self._session.post(
                self.endpoint,
                json=payload,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.Timeout:
            logger.error(f"GraphQL {operation_name} timed out after {self.timeout}s")
            raise GraphQLError(f"{operation_name or 'GraphQL'} request timed out")
        except requests.RequestException as e:
            logger.error(f"GraphQL {operation_name} failed: {e}")
            raise GraphQLError(f"{operation_name or 'GraphQL'} request failed: {e}")

        if response.status_code != 200:
            logger.error(f"GraphQL {operation_name} returned {response.status_code}")
            raise GraphQLError(
                f"GraphQL API returned {response.status_code}: {response.text}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise GraphQLError(f"Invalid GraphQL response: {e}")

        if not isinstance(body, dict):
            raise GraphQLError("Invalid GraphQL response: expected a JSON object")

        result = GraphQLResponse(data=body.get("data") or {}, errors=body.get("errors") or [])
        if result.has_errors:
            logger.warning(f"GraphQL {operation_name} returned errors: {result.first_error_message}")
        return result

    def close(self) -> None:
        self._session.close()
