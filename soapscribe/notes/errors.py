from __future__ import annotations

from typing import Literal

ParseErrorKind = Literal["empty_extraction", "unsupported_payload"]


class ParseError(Exception):
    """
    Raised when a generation response cannot become a SOAP note.

    Retryable from the clinician's point of view, exactly like a failed generation call.
    """

    def __init__(self, kind: ParseErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message
