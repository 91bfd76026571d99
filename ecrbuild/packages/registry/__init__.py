"""Registry package for Amazon ECR addresses.

This package resolves user supplied registry addresses into validated
registry identities and formats destination image references.
"""

from .resolver import (
    ECR_PUBLIC_ENDPOINT,
    ECR_PUBLIC_HOST,
    image_tag,
    resolve_registry,
)

__all__ = [
    # Constants
    "ECR_PUBLIC_ENDPOINT",
    "ECR_PUBLIC_HOST",
    # Utilities
    "image_tag",
    "resolve_registry",
]
