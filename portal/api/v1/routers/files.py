from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import FileResponse

from portal.api import deps
from portal.services.storage.adapter import BlobStore, LocalFileSystemAdapter
from portal.services.storage.key_generator import KeyGenerator

router = APIRouter(prefix="/files", tags=["files"])


@router.get("/{object_key:path}")
async def download_file(
    object_key: str,
    ctx: deps.SessionContext = Depends(deps.get_session_context),
    blob_store: BlobStore = Depends(deps.get_blob_store_dep),
) -> FileResponse:
    if not isinstance(blob_store, LocalFileSystemAdapter):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    owner = KeyGenerator.owner_of(object_key)
    if owner is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    if owner != str(ctx.uid) and not ctx.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to access this file")
    try:
        path = blob_store.resolve_path(object_key)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid file path") from exc
    if not path.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    return FileResponse(path, filename=path.name.split("_", 2)[-1])
