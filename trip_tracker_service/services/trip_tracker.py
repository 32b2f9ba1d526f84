"""Entry point for tracking a traveler along a monitored trip."""
from datetime import datetime
import logging
from typing import List, Optional, Tuple

from ..config.settings import Settings, get_settings
from ..exceptions import EmptyItineraryError, InteractionStateError, JourneyEndedError, JourneyNotFoundError
from ..models.base import Coordinates, utc
from ..models.itinerary import Itinerary
from ..models.position import TravelerPosition
from ..models.tracking import (
    EndCondition,
    EndTrackingResponse,
    InteractionSummary,
    MonitoredTrip,
    StartTrackingResponse,
    TrackedJourney,
    TrackedLocation,
    TripStatus,
    UpdateTrackingResponse,
    utc_now,
)
from .interactions.base import InteractionResult
from .interactions.dispatcher import InteractionDispatcher
from .journey_store import JourneyStore
from .leg_segmenter import LegSegmenter
from .schedule_classifier import ScheduleClassifier, ScheduleResult
from .traveler_locator import Guidance, TravelerLocator
from .trip_provider import TripProvider

logger = logging.getLogger(__name__)

# Statuses under which a bus operator should no longer expect the traveler
CANCEL_NOTIFICATION_STATUSES = (TripStatus.DEVIATED, TripStatus.BEHIND_SCHEDULE)


class TripTracker:
    def __init__(
        self,
        store: JourneyStore,
        trip_provider: TripProvider,
        dispatcher: InteractionDispatcher,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.store = store
        self.trip_provider = trip_provider
        self.dispatcher = dispatcher
        self.segmenter = LegSegmenter(self.settings)
        self.classifier = ScheduleClassifier(self.settings, self.segmenter)
        self.locator = TravelerLocator(self.settings, self.segmenter)

    def start(
        self,
        trip_id: str,
        coordinates: Coordinates,
        timestamp: Optional[datetime] = None,
        speed: Optional[float] = None,
    ) -> StartTrackingResponse:
        """
        Begin tracking a trip from the traveler's first position.

        The itinerary is checked before a journey is stored, so a malformed
        trip never leaves an active journey behind.
        """
        trip = self.trip_provider.get_monitored_trip(trip_id)
        timestamp = utc(timestamp or utc_now())
        self.validate_itinerary(trip.itinerary)

        journey = self.store.create(TrackedJourney(trip_id=trip_id, start_time=timestamp))
        logger.info(f"Started journey {journey.id} for trip {trip_id}")

        response, _ = self._track(journey, trip, coordinates, timestamp, speed)
        return StartTrackingResponse(
            journey_id=journey.id,
            trip_status=response.trip_status,
            instruction=response.instruction,
            frequency_seconds=self.settings.TRIP_TRACKING_UPDATE_FREQUENCY_SECONDS,
        )

    def validate_itinerary(self, itinerary: Itinerary) -> None:
        """Raise an ItineraryError if any leg can not be segmented."""
        if not itinerary.legs:
            raise EmptyItineraryError("Itinerary has no legs to track")
        for leg in itinerary.legs:
            self.segmenter.segment(leg)

    def update(
        self,
        journey_id: str,
        coordinates: Coordinates,
        timestamp: Optional[datetime] = None,
        speed: Optional[float] = None,
    ) -> UpdateTrackingResponse:
        """Record a new position and return the status and guidance for it."""
        journey = self.store.get(journey_id)
        if not journey.is_active:
            raise JourneyEndedError(f"Journey {journey_id} has already been completed")
        trip = self.trip_provider.get_monitored_trip(journey.trip_id)
        response, _ = self._track(journey, trip, coordinates, utc(timestamp or utc_now()), speed)
        return response

    def end(self, journey_id: str, reason: EndCondition = EndCondition.TERMINATED_BY_USER) -> EndTrackingResponse:
        journey = self.store.get(journey_id)
        if not journey.is_active:
            raise JourneyEndedError(f"Journey {journey_id} has already been completed")
        return self._complete(journey, reason)

    def force_end(self, trip_id: str, reason: EndCondition = EndCondition.FORCIBLY_TERMINATED) -> EndTrackingResponse:
        """End the ongoing journey of a trip when its journey id has been lost."""
        journey = self.store.find_active(trip_id)
        if journey is None:
            raise JourneyNotFoundError(f"Journey for trip {trip_id} does not exist")
        return self._complete(journey, reason)

    def _complete(self, journey: TrackedJourney, reason: EndCondition) -> EndTrackingResponse:
        cancelled = 0
        if reason != EndCondition.TRIP_COMPLETED:
            trip = self.trip_provider.get_monitored_trip(journey.trip_id)
            cancelled = self.dispatcher.cancel_all_bus_notifications(journey.id, trip.itinerary.legs)
        ended = self.store.end(journey.id, reason, utc_now())
        return EndTrackingResponse(
            journey_id=ended.id,
            end_condition=reason,
            total_deviation=ended.total_deviation or 0.0,
            cancelled_notifications=cancelled,
        )

    def _track(
        self,
        journey: TrackedJourney,
        trip: MonitoredTrip,
        coordinates: Coordinates,
        timestamp: datetime,
        speed: Optional[float],
    ) -> Tuple[UpdateTrackingResponse, Guidance]:
        itinerary = trip.itinerary
        result: ScheduleResult = self.classifier.classify(itinerary, coordinates, timestamp)
        position = TravelerPosition(
            expected_leg=result.leg,
            next_leg=itinerary.next_leg(result.leg) if result.leg else None,
            coordinates=coordinates,
            current_time=timestamp,
            speed=speed,
            mobility_mode=trip.mobility_profile.mobility_mode,
            segmented_leg=result.segmented_leg,
            projection=result.projection,
        )
        guidance = self.locator.get_guidance(result.status, position, journey.is_first_update, result.delta_seconds)

        self.store.append_location(journey.id, TrackedLocation(
            timestamp=timestamp,
            lat=coordinates.lat,
            lon=coordinates.lon,
            speed=speed,
            trip_status=result.status,
            deviation_meters=result.deviation,
        ))

        interactions = self._dispatch(journey.id, result.status, position, guidance)
        instruction = guidance.text
        logger.debug(f"Journey {journey.id}: {result.status.value}, deviation {result.deviation:.1f}m, {instruction}")
        return UpdateTrackingResponse(
            trip_status=result.status,
            instruction=instruction,
            deviation_meters=result.deviation,
            interactions=[
                InteractionSummary(key=r.key, sent=r.sent, error=r.error) for r in interactions
            ],
        ), guidance

    def _dispatch(
        self,
        journey_id: str,
        status: TripStatus,
        position: TravelerPosition,
        guidance: Guidance,
    ) -> List[InteractionResult]:
        results: List[InteractionResult] = []

        if guidance.notify_bus_operator:
            sent = self.dispatcher.handle_send_bus_notification(journey_id, status, position)
            if sent is not None:
                results.append(sent)

        if guidance.step is not None and guidance.text is not None:
            triggered = self.dispatcher.handle_segment_action(journey_id, guidance.step, guidance.step_after, position)
            if triggered is not None:
                results.append(triggered)

        next_leg = position.next_leg
        if (
            status in CANCEL_NOTIFICATION_STATUSES
            and next_leg is not None
            and next_leg.is_bus_leg
            and self.dispatcher.has_sent_notification(journey_id, next_leg.route_id)
        ):
            try:
                results.append(self.dispatcher.cancel_bus_notification(journey_id, next_leg))
            except InteractionStateError as e:
                # Another update cancelled it first.
                logger.warning(f"Could not cancel bus notification: {e}")
        return results
