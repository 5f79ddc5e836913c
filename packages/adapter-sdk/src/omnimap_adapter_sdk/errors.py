from typing import Any


class DocumentNotFoundError(LookupError):
    """Raised by an adapter when an update or delete targets a missing document."""

    def __init__(self, collection: str, document_id: Any):
        self.collection = collection
        self.document_id = document_id
        super().__init__(f"Document '{document_id}' not found in '{collection}'")
