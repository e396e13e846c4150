"""
Configuration Sync

Fetches the complete remote config collection from the backend.

Documents are pulled in pages of 25 using cursor-after pagination and
flattened into one key/value mapping via the configured attribute names.
"""

from typing import Any, Mapping

from remote_config.common.exceptions import SchemaError, TransportError
from remote_config.common.logging_setup import get_service_logger

from .types import DocumentTransport, to_text

logger = get_service_logger("config.sync")

PAGE_SIZE = 25
DOCUMENT_ID_FIELD = "$id"


class ConfigSync:
    """
    Pulls every document of the config collection.

    A record missing the key or value attribute fails the whole fetch with
    SchemaError rather than being skipped.
    """

    def __init__(
        self,
        transport: DocumentTransport,
        database_id: str,
        collection_id: str,
        key_attribute: str,
        value_attribute: str,
        page_size: int = PAGE_SIZE,
    ):
        self.transport = transport
        self.database_id = database_id
        self.collection_id = collection_id
        self.key_attribute = key_attribute
        self.value_attribute = value_attribute
        self.page_size = page_size

    async def fetch_all(self) -> dict[str, str]:
        """
        Fetch and reduce the whole collection.

        Returns:
            Mapping of key to value text; empty if the collection has no documents

        Raises:
            TransportError: the query transport failed
            SchemaError: a record lacks a configured attribute
        """
        log = logger.bind(database_id=self.database_id, collection_id=self.collection_id)
        mappings: dict[str, str] = {}
        cursor: str | None = None
        pages = 0

        while True:
            documents = await self.transport.list_documents(
                self.database_id,
                self.collection_id,
                limit=self.page_size,
                cursor_after=cursor,
            )
            pages += 1

            if not documents:
                break

            for document in documents:
                key, value = self._reduce(document)
                mappings[key] = value

            if len(documents) < self.page_size:
                break

            cursor = self._document_id(documents[-1])

        log.info(
            f"Config fetched: {len(mappings)} keys in {pages} pages",
            extra={"key_count": len(mappings), "page_count": pages},
        )

        return mappings

    def _reduce(self, document: Mapping[str, Any]) -> tuple[str, str]:
        """Extract (key, value) text from one record"""
        for attribute in (self.key_attribute, self.value_attribute):
            if document.get(attribute) is None:
                record_id = document.get(DOCUMENT_ID_FIELD)
                raise SchemaError(
                    f"Document {record_id} has no '{attribute}' attribute",
                    record_id=record_id,
                    attribute=attribute,
                )

        return (
            to_text(document[self.key_attribute]),
            to_text(document[self.value_attribute]),
        )

    def _document_id(self, document: Mapping[str, Any]) -> str:
        """Cursor for the page after ``document``"""
        document_id = document.get(DOCUMENT_ID_FIELD)
        if document_id is None:
            raise TransportError(
                "Document without an identifier; cannot paginate",
                operation="list_documents",
            )
        return str(document_id)
