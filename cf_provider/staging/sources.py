#cf_provider\staging\sources.py

"""Staging sources: an application is staged from exactly one of these."""

from dataclasses import dataclass, field
from typing import AbstractSet, List, Optional, Union

from cf_provider.core.errors import UnsupportedLifecycleError
from cf_provider.core.models import LifecycleType


@dataclass(frozen=True)
class ArchiveSource:
    """Zipped application source, staged with buildpacks."""

    path: str
    hash: Optional[str] = None
    buildpacks: List[str] = field(default_factory=list)
    stack: Optional[str] = None


@dataclass(frozen=True)
class ImageSource:
    """Container image, optionally from a private registry."""

    image: str
    username: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)


SourceSpec = Union[ArchiveSource, ImageSource]


# Inputs whose change forces a new droplet
ARCHIVE_TRIGGERS = frozenset({
    "buildpacks",
    "source_code_path",
    "source_code_hash",
    "stack",
    "environment",
})

IMAGE_TRIGGERS = frozenset({
    "docker_image",
    "docker_username",
    "docker_password",
    "environment",
})


def staging_request_for(
    lifecycle_type: LifecycleType,
    desired,
    changed: AbstractSet[str],
) -> Optional[SourceSpec]:
    """
    Decide what to stage for the desired configuration.

    Returns None when the current droplet can be kept.

    Raises:
        UnsupportedLifecycleError: lifecycle type cannot be staged here
    """
    if lifecycle_type == LifecycleType.BUILDPACK:
        if desired.source_code_path and changed & ARCHIVE_TRIGGERS:
            return ArchiveSource(
                path=desired.source_code_path,
                hash=desired.source_code_hash,
                buildpacks=list(desired.buildpacks),
                stack=desired.stack,
            )
        return None

    if lifecycle_type == LifecycleType.DOCKER:
        if desired.docker_image and changed & IMAGE_TRIGGERS:
            return ImageSource(
                image=desired.docker_image,
                username=desired.docker_username,
                password=desired.docker_password,
            )
        return None

    raise UnsupportedLifecycleError(
        f"unsupported lifecycle type: {lifecycle_type.value}"
    )
