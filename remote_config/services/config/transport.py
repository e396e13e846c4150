"""
Backend Transports

Default collaborators talking to an Appwrite-compatible backend:
- HttpDocumentTransport: paginated document listing over REST (httpx)
- WebSocketRealtimeTransport: realtime channel subscription (aiohttp)

Optimized for low overhead:
- Reuses a single HTTP client / session (no connection setup per request)
"""

import json
from typing import Any, AsyncIterator, Mapping, Sequence
from urllib.parse import urlencode, urlsplit, urlunsplit

import aiohttp
import httpx

from remote_config.common.exceptions import TransportError
from remote_config.common.logging_setup import get_service_logger

from .types import RealtimeEvent

logger = get_service_logger("transport")

REALTIME_HEARTBEAT_S = 20.0


def _query(method: str, *values: Any) -> str:
    """Encode one Appwrite query"""
    return json.dumps({"method": method, "values": list(values)})


class HttpDocumentTransport:
    """
    Lists collection documents via the REST API.

    GET {endpoint}/databases/{db}/collections/{coll}/documents
    """

    def __init__(
        self,
        endpoint: str,
        project_id: str,
        api_key: str = "",
        timeout: float = 30.0,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.project_id = project_id
        self.api_key = api_key
        self.timeout = timeout
        self._http_transport = http_transport
        # Reusable HTTP client - avoids connection overhead per request
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create reusable HTTP client"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._http_transport,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client"""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def list_documents(
        self,
        database_id: str,
        collection_id: str,
        limit: int,
        cursor_after: str | None = None,
    ) -> Sequence[Mapping[str, Any]]:
        """
        Fetch one page of documents.

        Raises:
            TransportError: on network failure or a non-2xx response
        """
        queries = [_query("limit", limit)]
        if cursor_after is not None:
            queries.append(_query("cursorAfter", cursor_after))

        url = f"{self.endpoint}/databases/{database_id}/collections/{collection_id}/documents"

        try:
            client = await self._get_client()
            response = await client.get(
                url,
                params=[("queries[]", q) for q in queries],
                headers=self._headers(),
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"HTTP {e.response.status_code} listing documents",
                operation="list_documents",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"HTTP error listing documents: {e}", operation="list_documents") from e
        except ValueError as e:
            raise TransportError(f"Invalid JSON listing documents: {e}", operation="list_documents") from e

        documents = data.get("documents") if isinstance(data, dict) else None
        if not isinstance(documents, list):
            raise TransportError("Response has no 'documents' list", operation="list_documents")

        logger.debug(
            f"Listed {len(documents)} documents",
            extra={"collection_id": collection_id, "cursor_after": cursor_after},
        )
        return documents

    def _headers(self) -> dict[str, str]:
        """Get request headers"""
        headers = {
            "X-Appwrite-Project": self.project_id,
            "Content-Type": "application/json",
        }
        if self.api_key:
            headers["X-Appwrite-Key"] = self.api_key
        return headers


class WebSocketRealtimeTransport:
    """
    Subscribes to realtime channels over a websocket.

    Only ``event`` messages are yielded; connection acks and heartbeat
    responses are skipped, and undecodable frames are logged and dropped.
    """

    def __init__(
        self,
        endpoint: str,
        project_id: str,
        heartbeat: float = REALTIME_HEARTBEAT_S,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.project_id = project_id
        self.heartbeat = heartbeat
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self) -> None:
        """Close websocket session"""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    def realtime_url(self, channels: list[str]) -> str:
        """Websocket URL for the given channels"""
        parts = urlsplit(self.endpoint)
        scheme = "wss" if parts.scheme == "https" else "ws"
        query = urlencode([("project", self.project_id)] + [("channels[]", c) for c in channels])
        return urlunsplit((scheme, parts.netloc, f"{parts.path}/realtime", query, ""))

    async def subscribe(self, channels: list[str]) -> AsyncIterator[RealtimeEvent]:
        """
        Yield events for ``channels`` until the socket closes.

        Raises:
            TransportError: if the connection fails or the server reports an error
        """
        url = self.realtime_url(channels)
        session = await self._get_session()

        try:
            ws = await session.ws_connect(url, heartbeat=self.heartbeat)
        except aiohttp.ClientError as e:
            raise TransportError(f"Realtime connection failed: {e}", operation="subscribe") from e

        logger.info(f"Realtime connected ({len(channels)} channels)", extra={"channels": channels})

        async with ws:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    event = self.parse_message(msg.data)
                    if event is not None:
                        yield event
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    raise TransportError(f"Realtime socket error: {ws.exception()}", operation="subscribe")
                elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSED):
                    break

        logger.info("Realtime connection closed")

    @staticmethod
    def parse_message(raw: str) -> RealtimeEvent | None:
        """
        Decode one realtime frame.

        Returns:
            RealtimeEvent for ``event`` messages, None for anything skippable

        Raises:
            TransportError: for server-side ``error`` messages
        """
        try:
            message = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Dropping undecodable realtime frame: {e}")
            return None

        if not isinstance(message, dict):
            return None

        message_type = message.get("type")
        data = message.get("data")

        if message_type == "error":
            detail = data if isinstance(data, dict) else {"message": data}
            raise TransportError(
                f"Realtime error: {detail.get('message') or 'unknown'}",
                operation="subscribe",
                status_code=detail.get("code"),
            )

        if message_type != "event" or not isinstance(data, dict):
            return None

        payload = data.get("payload")
        return RealtimeEvent(
            events=list(data.get("events") or []),
            payload=payload if isinstance(payload, dict) else {},
            channels=list(data.get("channels") or []),
        )
