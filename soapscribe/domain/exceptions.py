from __future__ import annotations

import uuid


class BusinessValidationError(Exception):
    """Raised when a domain/business rule is violated."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class VersionConflictError(Exception):
    """
    A template edit was based on a version that is no longer current.

    Surfaced for the editor to refresh and retry; never merged automatically.
    """

    kind = "version_conflict"

    def __init__(
        self,
        *,
        template_id: uuid.UUID,
        expected_version: int,
        current_version: int | None = None,
    ):
        self.template_id = template_id
        self.expected_version = expected_version
        self.current_version = current_version
        self.message = (
            f"Template was modified (expected version {expected_version}"
            + (f", found {current_version})" if current_version is not None else ")")
        )
        super().__init__(self.message)


class TemplateVersionNotFoundError(Exception):
    kind = "template_version_not_found"

    def __init__(self, *, template_id: uuid.UUID, version: int):
        self.template_id = template_id
        self.version = version
        self.message = f"Template version {version} does not exist"
        super().__init__(self.message)
