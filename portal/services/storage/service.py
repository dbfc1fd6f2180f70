from portal.core.settings import settings
from portal.services.storage.adapter import BlobStore, GCSStorageAdapter, LocalFileSystemAdapter


def get_blob_store(*, bucket_override: str | None = None) -> BlobStore:
    if settings.storage_provider == "gcs":
        bucket = bucket_override or settings.gcs_bucket
        if not bucket:
            raise ValueError("GCS bucket is not configured")
        return GCSStorageAdapter(bucket=bucket)

    return LocalFileSystemAdapter(
        base_path=settings.local_upload_dir,
        base_url=settings.public_base_url,
    )
