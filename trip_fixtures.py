"""Itineraries and helpers shared by the test modules."""
from datetime import datetime, timedelta, timezone

import polyline

from trip_tracker_service.config.settings import Settings
from trip_tracker_service.models.base import Coordinates
from trip_tracker_service.models.itinerary import Itinerary, Leg

T0 = datetime(2024, 5, 1, 13, 0, tzinfo=timezone.utc)  # 9:00 AM in New York

# Walk leg: east along Main Street, then north on Oak Avenue.
A = (33.78, -84.400)
MID1 = (33.78, -84.399)
B = (33.78, -84.398)
MID2 = (33.781, -84.398)
C = (33.782, -84.398)

# Walk to the bus stop, then a bus ride east with four intermediate stops.
W = (33.79, -84.402)
S0 = (33.79, -84.400)
BUS_STOPS = [(33.79, -84.390), (33.79, -84.380), (33.79, -84.370), (33.79, -84.360)]
S5 = (33.79, -84.350)

ROUTE_ID = "GwinnettCountyTransit:360"
AGENCY_ID = "GwinnettCountyTransit:GCT"


def coords(point) -> Coordinates:
    return Coordinates(lat=point[0], lon=point[1])


def epoch_ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def place(point, name, stop_id=None) -> dict:
    data = {"name": name, "lat": point[0], "lon": point[1]}
    if stop_id:
        data["stopId"] = stop_id
    return data


def step(point, street, relative, absolute, bearing, distance=0.0) -> dict:
    return {
        "distance": distance,
        "relativeDirection": relative,
        "absoluteDirection": absolute,
        "streetName": street,
        "lat": point[0],
        "lon": point[1],
        "bearing": bearing,
    }


def walk_leg_data(start=T0, duration=400, geometry=None, steps=None) -> dict:
    geometry = geometry if geometry is not None else [A, MID1, B, MID2, C]
    return {
        "mode": "WALK",
        "startTime": epoch_ms(start),
        "endTime": epoch_ms(start + timedelta(seconds=duration)),
        "duration": duration,
        "transitLeg": False,
        "from": place(A, "Origin"),
        "to": place(C, "Destination"),
        "legGeometry": {"points": polyline.encode(geometry, 5), "length": len(geometry)},
        "steps": steps if steps is not None else [
            step(A, "Main Street", "DEPART", "EAST", 90.0, 185.0),
            step(B, "Oak Avenue", "LEFT", "NORTH", 0.0, 222.0),
        ],
    }


def access_leg_data(start=T0, duration=150) -> dict:
    return {
        "mode": "WALK",
        "startTime": epoch_ms(start),
        "endTime": epoch_ms(start + timedelta(seconds=duration)),
        "duration": duration,
        "transitLeg": False,
        "from": place(W, "Home"),
        "to": place(S0, "Lawrenceville Hwy Stop", "GwinnettCountyTransit:100"),
        "legGeometry": {"points": polyline.encode([W, S0], 5), "length": 2},
        "steps": [step(W, "Stop Street", "DEPART", "EAST", 90.0, 185.0)],
    }


def bus_leg_data(start=T0, duration=600, departure_delay=0) -> dict:
    stops = [
        place(point, f"Stop {i + 1}", f"GwinnettCountyTransit:{101 + i}")
        for i, point in enumerate(BUS_STOPS)
    ]
    return {
        "mode": "BUS",
        "startTime": epoch_ms(start),
        "endTime": epoch_ms(start + timedelta(seconds=duration)),
        "duration": duration,
        "departureDelay": departure_delay,
        "transitLeg": True,
        "from": place(S0, "Lawrenceville Hwy Stop", "GwinnettCountyTransit:100"),
        "to": place(S5, "Justice Center", "GwinnettCountyTransit:105"),
        "legGeometry": {"points": polyline.encode([S0] + BUS_STOPS + [S5], 5), "length": 6},
        "intermediateStops": stops,
        "agencyId": AGENCY_ID,
        "routeId": ROUTE_ID,
        "routeShortName": "360",
        "tripId": "GwinnettCountyTransit:trip-9",
    }


def walk_leg(**kwargs) -> Leg:
    return Leg.model_validate(walk_leg_data(**kwargs))


def bus_leg(**kwargs) -> Leg:
    return Leg.model_validate(bus_leg_data(**kwargs))


def walk_itinerary() -> Itinerary:
    return Itinerary.model_validate({"legs": [walk_leg_data()]})


def bus_itinerary() -> Itinerary:
    return Itinerary.model_validate({"legs": [bus_leg_data()]})


def walk_then_bus_itinerary(bus_start=T0 + timedelta(seconds=300), departure_delay=0) -> Itinerary:
    return Itinerary.model_validate({
        "legs": [
            access_leg_data(),
            bus_leg_data(start=bus_start, departure_delay=departure_delay),
        ]
    })


def make_settings(**overrides) -> Settings:
    return Settings(**overrides)


def with_naive_times(leg_data: dict) -> dict:
    """Replace a leg's epoch times with ISO strings that carry no offset."""
    data = dict(leg_data)
    for key in ("startTime", "endTime"):
        moment = datetime.fromtimestamp(data[key] / 1000, tz=timezone.utc)
        data[key] = moment.replace(tzinfo=None).isoformat()
    return data
