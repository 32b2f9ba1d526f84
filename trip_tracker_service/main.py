"""
Replay a recorded GPS trace against a planned itinerary and print the status
and guidance produced for every fix.

    python -m trip_tracker_service.main --itinerary itinerary.json --trace trace.json

The trace is a JSON list of {"timestamp", "lat", "lon", "speed"} objects.
"""
import argparse
from datetime import datetime, timezone
import json
import logging
import sys

from dotenv import load_dotenv

from .config.settings import get_settings
from .exceptions import TripTrackingError
from .models.actions import TripActionsConfig, load_trip_actions
from .models.base import Coordinates
from .models.mobility import MobilityProfile
from .models.tracking import EndCondition, MonitoredTrip
from .services.interactions.dispatcher import InteractionDispatcher
from .services.journey_store import InMemoryJourneyStore, RedisJourneyStore
from .services.trip_provider import InMemoryTripProvider, load_itinerary, load_mobility_profile
from .services.trip_tracker import TripTracker
from .utils.logging_config import setup_logging

load_dotenv()

logger = logging.getLogger(__name__)


def parse_timestamp(value) -> datetime:
    """Accept epoch milliseconds or an ISO 8601 string."""
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    return datetime.fromisoformat(value)


def replay(tracker: TripTracker, trip_id: str, trace: list) -> int:
    if not trace:
        logger.error("Trace is empty, nothing to replay")
        return 1

    first = trace[0]
    start = tracker.start(
        trip_id,
        Coordinates(lat=first['lat'], lon=first['lon']),
        parse_timestamp(first['timestamp']),
        first.get('speed'),
    )
    print(f"START {start.trip_status.value} {start.instruction or ''}")

    for fix in trace[1:]:
        response = tracker.update(
            start.journey_id,
            Coordinates(lat=fix['lat'], lon=fix['lon']),
            parse_timestamp(fix['timestamp']),
            fix.get('speed'),
        )
        sent = ", ".join(f"{i.key}={'sent' if i.sent else 'not sent'}" for i in response.interactions)
        print(
            f"{fix['timestamp']} {response.trip_status.value} "
            f"{response.deviation_meters:.1f}m {response.instruction or ''} {sent}".rstrip()
        )

    end = tracker.end(start.journey_id, EndCondition.TRIP_COMPLETED)
    print(f"END total deviation {end.total_deviation:.1f}m")
    return 0


def main():
    parser = argparse.ArgumentParser(description='Replay a GPS trace against a planned itinerary')
    parser.add_argument('--itinerary', required=True, help='Itinerary JSON file')
    parser.add_argument('--trace', required=True, help='GPS trace JSON file')
    parser.add_argument('--mobility-profile', help='Mobility profile JSON file')
    parser.add_argument('--trip-actions', help='Interaction rule table JSON file')
    parser.add_argument('--redis', action='store_true', help='Store journeys in Redis instead of memory')
    parser.add_argument('--verbose', action='store_true', help='Log debug output')
    args = parser.parse_args()

    setup_logging(logging.DEBUG if args.verbose else logging.INFO)
    settings = get_settings()

    try:
        itinerary = load_itinerary(args.itinerary)
        profile = load_mobility_profile(args.mobility_profile) if args.mobility_profile else MobilityProfile()
        with open(args.trace, 'r') as f:
            trace = json.load(f)

        actions_file = args.trip_actions or settings.TRIP_ACTIONS_FILE
        try:
            actions = load_trip_actions(actions_file)
        except FileNotFoundError:
            logger.warning(f"No trip actions file at {actions_file}, interactions disabled")
            actions = TripActionsConfig()

        store = RedisJourneyStore(settings=settings) if args.redis else InMemoryJourneyStore()
        provider = InMemoryTripProvider()
        provider.add(MonitoredTrip(trip_id='replay', itinerary=itinerary, mobility_profile=profile))
        tracker = TripTracker(store, provider, InteractionDispatcher(store, actions, settings=settings), settings)

        sys.exit(replay(tracker, 'replay', trace))
    except TripTrackingError as e:
        logger.error(f"Replay failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
