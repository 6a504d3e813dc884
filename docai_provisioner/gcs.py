from __future__ import annotations

import logging
from pathlib import Path

from google.cloud import storage

from docai_provisioner.config import BUCKET_ROLES, STORAGE_CLASS
from docai_provisioner.types import BucketSpec

logger = logging.getLogger(__name__)


def split_gs_uri(uri: str) -> tuple[str, str]:
    if not uri.startswith("gs://"):
        raise ValueError(f"Not a gs:// URI: {uri!r}")
    bucket, _, prefix = uri[len("gs://") :].partition("/")
    if prefix and not prefix.endswith("/"):
        prefix += "/"
    return bucket, prefix


def bucket_specs(project_id: str, region: str) -> list[BucketSpec]:
    return [BucketSpec.for_role(project_id, role, region) for role in BUCKET_ROLES]


def bucket_exists(client: storage.Client, name: str) -> bool:
    """
    Existence check. Anything other than a clean answer counts as "absent"
    so the caller attempts creation.
    """
    try:
        return client.lookup_bucket(name) is not None
    except Exception as e:
        logger.warning("Could not check gs://%s (%s: %s); will try to create it", name, type(e).__name__, e)
        return False


def ensure_bucket(client: storage.Client, spec: BucketSpec, *, project_id: str) -> bool:
    """Create the bucket if absent. Returns True when a create call was issued."""
    if bucket_exists(client, spec.name):
        logger.info("Bucket %s already exists.", spec.uri)
        return False

    logger.info("Creating %s in region %s (uniform access, %s)...", spec.uri, spec.region, STORAGE_CLASS)
    b = client.bucket(spec.name)
    b.storage_class = STORAGE_CLASS
    b.iam_configuration.uniform_bucket_level_access_enabled = True
    client.create_bucket(b, project=project_id, location=spec.region)
    return True


def upload_directory(client: storage.Client, bucket: str, directory: Path) -> int:
    """Upload regular files directly under ``directory`` to the bucket root."""
    b = client.bucket(bucket)
    count = 0
    for path in sorted(directory.iterdir()):
        if not path.is_file():
            continue
        blob = b.blob(path.name)
        blob.upload_from_filename(str(path))
        count += 1
    return count


def copy_prefix(client: storage.Client, source_uri: str, dest_dir: Path) -> int:
    """Download every object under ``source_uri`` into ``dest_dir``, keeping relative paths."""
    bucket, prefix = split_gs_uri(source_uri)
    root = dest_dir.resolve()
    count = 0
    for blob in client.list_blobs(bucket, prefix=prefix):
        rel = blob.name[len(prefix) :]
        if not rel or rel.endswith("/"):
            continue
        target = (dest_dir / rel).resolve()
        if not target.is_relative_to(root):
            logger.warning("Skipping gs://%s/%s: resolves outside %s", bucket, blob.name, dest_dir)
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        blob.download_to_filename(str(target))
        count += 1
    return count
