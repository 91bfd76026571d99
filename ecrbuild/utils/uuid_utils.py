"""Workflow identifier generation using ULID."""

from ulid import ULID


def generate_workflow_id() -> str:
    """
    Generate a unique workflow identifier.

    ULIDs are time-ordered, so clone directories and image tags sort by
    creation time. The lowercase form is a valid image tag.
    """
    return str(ULID()).lower()
