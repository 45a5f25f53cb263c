from __future__ import annotations


class SeasonPricingError(Exception):
    """Base class for season pricing domain errors."""


class SeasonCalendarNotFound(SeasonPricingError):
    pass


class SeasonRequestNotFound(SeasonPricingError):
    pass


class DuplicateSeasonRequest(SeasonPricingError):
    """A pending or done request already exists for the room and year."""


class InvalidStatusTransition(SeasonPricingError):
    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move a '{current}' request to '{target}'.")
        self.current = current
        self.target = target


class RoomTypeNotResolved(SeasonPricingError):
    pass


class ChannelManagerError(SeasonPricingError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ReconciliationError(SeasonPricingError):
    """Channel manager accepted the blocks but the local trace could not be written."""


class ReconciliationPending(SeasonPricingError):
    """The request was already pushed and waits for its trace to be reconciled."""


class NotFlaggedForReconciliation(SeasonPricingError):
    pass
