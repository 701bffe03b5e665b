"""
capseg_package/io/gcs.py

Downloads model folders from GCS into the local model dirs before the
API starts, so registry.py can load them offline.

    CAPTION_GCS_URI      -> CAPTION_MODEL_DIR
    SEGMENTATION_GCS_URI -> SEGMENTATION_MODEL_DIR

Rules:
- A URI left empty -> that model is skipped
- If bucket is private -> ADC MUST be available, otherwise fail clearly
- Anonymous mode is allowed only if ALLOW_PUBLIC_GCS=true
"""

import os
import sys
import shutil
from pathlib import Path
from typing import List, Optional, Tuple
from urllib.parse import urlparse

from google.cloud import storage
from google.auth.exceptions import DefaultCredentialsError

from capseg_package.config import Settings, get_settings
from capseg_package.utils.logging import get_logger


logger = get_logger("capseg_package.io.gcs")


def parse_gs_uri(gs_uri: str) -> Tuple[str, str]:
    if not gs_uri.startswith("gs://"):
        raise ValueError(f"Invalid GCS URI (must start with gs://): {gs_uri}")
    parsed = urlparse(gs_uri)
    bucket = parsed.netloc
    prefix = parsed.path.lstrip("/")
    return bucket, prefix


def _get_project_id():
    return (
        os.getenv("GOOGLE_CLOUD_PROJECT")
        or os.getenv("GCP_PROJECT")
        or os.getenv("GCLOUD_PROJECT")
        or os.getenv("PROJECT_ID")
    )


def _make_client():
    """
    Create GCS client.

    Priority:
    1) Authenticated client using ADC (private buckets)
    2) Anonymous client ONLY if ALLOW_PUBLIC_GCS=true
    """
    project_id = _get_project_id()
    allow_public = os.getenv("ALLOW_PUBLIC_GCS", "false").lower() == "true"

    try:
        if project_id:
            logger.info(f"Creating authenticated GCS client with project={project_id}")
            return storage.Client(project=project_id)
        logger.info("Creating authenticated GCS client (project inferred from ADC).")
        return storage.Client()

    except (DefaultCredentialsError, OSError) as e:
        if allow_public:
            logger.warning(
                f"ADC not found ({e}). Using anonymous client because ALLOW_PUBLIC_GCS=true."
            )
            return storage.Client.create_anonymous_client()

        raise DefaultCredentialsError(
            "ADC credentials not found, and ALLOW_PUBLIC_GCS is false.\n"
            "For private buckets, set GOOGLE_APPLICATION_CREDENTIALS to an ADC json."
        ) from e


def download_prefix(client, bucket_name: str, prefix: str, dest_dir: Path) -> int:
    """Copy every object under gs://bucket/prefix into dest_dir. Returns the count."""
    bucket = client.bucket(bucket_name)

    blobs = list(client.list_blobs(bucket, prefix=prefix))
    if not blobs:
        raise FileNotFoundError(f"No objects found at gs://{bucket_name}/{prefix}")

    dest_dir.mkdir(parents=True, exist_ok=True)

    for blob in blobs:
        if blob.name.endswith("/"):
            continue  # folder placeholder objects
        rel = blob.name[len(prefix):].lstrip("/") if blob.name != prefix else Path(blob.name).name
        target = dest_dir / rel
        target.parent.mkdir(parents=True, exist_ok=True)

        logger.info(f"Downloading gs://{bucket_name}/{blob.name} -> {target}")
        blob.download_to_filename(str(target))

    return len(blobs)


def model_downloads(settings: Settings) -> List[Tuple[str, Optional[str], Path]]:
    """(name, gs uri or None, local dir) for each collaborator."""
    return [
        ("captioner", settings.CAPTION_GCS_URI, Path(settings.CAPTION_MODEL_DIR).resolve()),
        ("segmenter", settings.SEGMENTATION_GCS_URI, Path(settings.SEGMENTATION_MODEL_DIR).resolve()),
    ]


def sync_models(settings: Optional[Settings] = None, client=None) -> List[str]:
    """Download every configured model. Returns the names that were fetched."""
    settings = settings or get_settings()
    fetched = []

    for name, gs_uri, local_model_dir in model_downloads(settings):
        if not gs_uri:
            logger.info(f"No GCS URI set for {name}. Skipping download.")
            continue

        bucket_name, prefix = parse_gs_uri(gs_uri)
        client = client or _make_client()

        if local_model_dir.exists():
            logger.info(f"Cleaning existing local model dir: {local_model_dir}")
            shutil.rmtree(local_model_dir)

        download_prefix(client, bucket_name, prefix, local_model_dir)
        fetched.append(name)

    return fetched


def main() -> int:
    try:
        fetched = sync_models()
        logger.info(f"GCS sync complete ({', '.join(fetched) or 'nothing to fetch'}).")
        return 0
    except Exception as e:
        logger.exception(f"GCS download failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
