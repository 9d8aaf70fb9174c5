"""Delivery errors raised by messaging transports."""

from __future__ import annotations

# LINE answers 403 when the bot was removed from / blocked by the target,
# and 410 for targets that no longer exist.
PERMANENT_STATUS_CODES = frozenset({403, 410})


class DeliveryError(RuntimeError):
    """A push or reply call did not succeed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def permanent(self) -> bool:
        """True when the target will never accept messages again."""

        return self.status_code in PERMANENT_STATUS_CODES
