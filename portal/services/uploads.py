from __future__ import annotations

import logging
from pathlib import Path
from uuid import UUID, uuid4

from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool

from portal.schemas.admission import SlotState, WizardSession
from portal.schemas.application import DocumentSlot
from portal.services.errors import UploadFailedError, UploadRejectedError
from portal.services.storage.adapter import BlobStore
from portal.services.storage.key_generator import KeyGenerator

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024

# Accepted content types and the leading bytes their files must start with
_MAGIC_SIGNATURES: dict[str, list[bytes]] = {
    "image/jpeg": [b"\xff\xd8\xff"],
    "image/png": [b"\x89PNG\r\n\x1a\n"],
    "application/pdf": [b"%PDF"],
}

_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "application/pdf": ".pdf",
}

TYPE_ERROR = "Only JPG, PNG, and PDF files are allowed"


def _size_error(max_size_bytes: int) -> str:
    return f"File size should be less than {max_size_bytes // (1024 * 1024)}MB"


def _validate_signature(header_bytes: bytes, content_type: str) -> None:
    if not any(header_bytes.startswith(sig) for sig in _MAGIC_SIGNATURES[content_type]):
        raise UploadRejectedError(TYPE_ERROR, details={"reason": "content_mismatch"})


def _safe_filename(filename: str | None, fallback: str) -> str:
    if not filename:
        return fallback
    return Path(filename.replace("\\", "/")).name or fallback


def resolve_staged_path(staging_dir: Path, relative_path: str) -> Path:
    staging_dir = staging_dir.resolve()
    candidate = (staging_dir / relative_path).resolve()
    if staging_dir not in candidate.parents:
        raise ValueError("Invalid staged file path")
    return candidate


def discard_staged(staging_dir: Path, state: SlotState) -> None:
    if state.staged_path:
        try:
            resolve_staged_path(staging_dir, state.staged_path).unlink(missing_ok=True)
        except ValueError:
            logger.warning("Ignoring staged file outside the staging area: %s", state.staged_path)
    state.clear_staged()


async def stage_upload(
    file: UploadFile,
    staging_dir: Path,
    uid: UUID,
    slot: DocumentSlot,
    max_size_bytes: int,
) -> SlotState:
    """Check and park a selected file until its slot is uploaded.

    Size and type are enforced here, before anything reaches the blob store.
    """
    content_type = (file.content_type or "").split(";")[0].strip().lower()
    if content_type not in _MAGIC_SIGNATURES:
        await file.close()
        raise UploadRejectedError(TYPE_ERROR, details={"slot": slot.value, "content_type": content_type})
    if file.size is not None and file.size > max_size_bytes:
        await file.close()
        raise UploadRejectedError(_size_error(max_size_bytes), details={"slot": slot.value, "size": file.size})

    staging_dir = staging_dir.resolve()
    dest_dir = staging_dir / str(uid) / slot.value
    dest_dir.mkdir(parents=True, exist_ok=True)
    original_name = _safe_filename(file.filename, f"{slot.value}{_EXTENSIONS[content_type]}")
    dest_path = dest_dir / f"{uuid4().hex}{_EXTENSIONS[content_type]}"
    bytes_written = 0

    try:
        with dest_path.open("wb") as handle:
            first_chunk = await file.read(CHUNK_SIZE)
            if not first_chunk:
                raise UploadRejectedError("The selected file is empty", details={"slot": slot.value})
            _validate_signature(first_chunk, content_type)
            chunk = first_chunk
            while chunk:
                bytes_written += len(chunk)
                if bytes_written > max_size_bytes:
                    raise UploadRejectedError(
                        _size_error(max_size_bytes), details={"slot": slot.value, "size": bytes_written}
                    )
                handle.write(chunk)
                chunk = await file.read(CHUNK_SIZE)
    except UploadRejectedError:
        # Clean up partial file on validation/size failure
        dest_path.unlink(missing_ok=True)
        raise
    finally:
        await file.close()

    return SlotState(
        url="",
        staged_path=dest_path.relative_to(staging_dir).as_posix(),
        staged_filename=original_name,
        staged_content_type=content_type,
        staged_size=bytes_written,
    )


async def upload_slot(
    session: WizardSession,
    slot: DocumentSlot,
    blob_store: BlobStore,
    staging_dir: Path,
) -> str:
    """Transfer a slot's staged file and return its URL.

    A slot with nothing staged keeps its current URL and is not sent again.
    A failed transfer leaves the staged file in place so the user can retry.
    """
    state = session.slots[slot]
    if not state.pending:
        return state.url

    try:
        path = resolve_staged_path(staging_dir, state.staged_path)
        content = await run_in_threadpool(path.read_bytes)
    except (OSError, ValueError) as exc:
        logger.warning("Staged file for %s/%s is gone: %s", session.uid, slot.value, exc)
        state.clear_staged()
        raise UploadFailedError(
            f"Please select the {slot.label} again", details={"slot": slot.value}
        ) from exc

    object_key = KeyGenerator.generate_object_key(slot, session.uid, state.staged_filename)
    try:
        url = await blob_store.upload(object_key, content, state.staged_content_type or "application/octet-stream")
    except Exception as exc:
        logger.exception("Upload of %s for %s failed", slot.value, session.uid)
        raise UploadFailedError(
            f"Failed to upload {slot.label}", details={"slot": slot.value}
        ) from exc

    discard_staged(staging_dir, state)
    state.url = url
    logger.info("Uploaded %s for %s to %s", slot.value, session.uid, object_key)
    return url
