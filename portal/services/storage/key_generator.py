import re
from datetime import datetime, timezone
from pathlib import PurePosixPath
from uuid import UUID

from portal.schemas.application import DocumentSlot


class KeyGenerator:
    @staticmethod
    def _safe_filename(filename: str | None) -> str:
        name = PurePosixPath((filename or "").replace("\\", "/")).name
        # Simple sanitization
        return re.sub(r"[^a-zA-Z0-9_.-]", "_", name) or "upload.bin"

    @staticmethod
    def generate_object_key(
        slot: DocumentSlot, uid: UUID, filename: str | None, timestamp: datetime | None = None
    ) -> str:
        moment = timestamp or datetime.now(timezone.utc)
        millis = int(moment.timestamp() * 1000)
        return f"{slot.folder}/{uid}_{millis}_{KeyGenerator._safe_filename(filename)}"

    @staticmethod
    def owner_of(object_key: str) -> str | None:
        """Return the uid encoded in a document key, or None for keys this portal did not issue."""
        parts = object_key.split("/")
        if len(parts) != 2 or parts[0] not in {slot.folder for slot in DocumentSlot}:
            return None
        owner, _, _rest = parts[1].partition("_")
        try:
            return str(UUID(owner))
        except ValueError:
            return None
