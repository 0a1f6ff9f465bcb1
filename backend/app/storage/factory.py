"""
Artifact Store Factory

Selects the correct backend (local | s3) based on config.
The rest of the app only imports get_artifact_store(); it never touches
the concrete classes directly.
"""

from __future__ import annotations

from app.core.config import Settings
from app.storage.base import ArtifactStore


def get_artifact_store(settings: Settings) -> ArtifactStore:
    """Return the artifact store for the configured backend."""
    backend = settings.artifact_backend.lower()

    if backend == "local":
        from app.storage.local import LocalArtifactStore
        return LocalArtifactStore(root=settings.artifact_dir)

    if backend == "s3":
        from app.storage.s3 import S3ArtifactStore
        return S3ArtifactStore(
            bucket=settings.s3_bucket,
            prefix=settings.s3_artifact_prefix,
            region=settings.aws_region,
        )

    raise ValueError(
        f"Unknown artifact backend: '{backend}'. "
        f"Valid options: 'local', 's3'"
    )
