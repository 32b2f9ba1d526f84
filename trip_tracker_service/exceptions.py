"""Errors raised by the trip tracking core."""


class TripTrackingError(Exception):
    """Base class for trip tracking errors."""


class ItineraryError(TripTrackingError):
    """The planned itinerary can not be used for tracking."""


class PolylineDecodeError(ItineraryError):
    """A leg geometry could not be decoded."""


class EmptyItineraryError(ItineraryError):
    """The itinerary has no legs."""


class JourneyNotFoundError(TripTrackingError):
    """No tracked journey exists for the given id."""


class JourneyAlreadyActiveError(TripTrackingError):
    """A journey for this trip has already been started and not ended."""


class JourneyEndedError(TripTrackingError):
    """The journey has already been completed."""


class ConcurrentModificationError(TripTrackingError):
    """The journey was modified by another writer during a read-modify-write."""


class InteractionStateError(TripTrackingError):
    """An interaction was requested in an order the idempotency map does not allow."""


class TripNotFoundError(TripTrackingError):
    """No monitored trip exists for the given id."""
