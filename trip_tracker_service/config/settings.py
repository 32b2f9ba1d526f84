from pathlib import Path
from pydantic_settings import BaseSettings
from typing import Optional
from functools import lru_cache

# Base directory for the project
BASE_DIR = Path(__file__).parent.parent.parent

# Directory for static interaction rule tables
TRIP_ACTIONS_DIR = BASE_DIR / 'data' / 'trip_actions'

class Settings(BaseSettings):
    """Application settings."""

    # Guidance Settings
    TRIP_INSTRUCTION_IMMEDIATE_RADIUS: float = 2.0  # meters
    TRIP_INSTRUCTION_UPCOMING_RADIUS: float = 10.0  # meters
    TRANSIT_GET_OFF_SOON_STOP_COUNT: int = 3
    MIN_TRANSIT_VEHICLE_SPEED: float = 5.0  # m/s

    # Leg Segmentation Settings
    WAYPOINT_EXCLUSION_RADIUS: float = 10.0  # meters
    WAYPOINT_SNAP_TOLERANCE: float = 2.0  # meters

    # Schedule Settings
    DEVIATION_THRESHOLD: float = 50.0  # meters
    AHEAD_OF_SCHEDULE_THRESHOLD_SECONDS: float = 60.0
    BEHIND_SCHEDULE_THRESHOLD_SECONDS: float = 60.0
    ACCEPTABLE_AHEAD_OF_SCHEDULE_IN_MINUTES: int = 15
    TRIP_TRACKING_UPDATE_FREQUENCY_SECONDS: int = 5
    OTP_TIMEZONE: str = 'America/New_York'

    # Interaction Settings
    TRIP_ACTIONS_FILE: Path = TRIP_ACTIONS_DIR / 'trip_actions.json'
    SEGMENT_ACTION_MATCH_RADIUS: float = 10.0  # meters
    INTERACTION_HTTP_TIMEOUT_SECONDS: float = 5.0
    PED_SIGNAL_API_HOST: Optional[str] = None
    PED_SIGNAL_API_PATH: str = '/intersections/{signal_id}/crossings/{crossing_id}/call'
    PED_SIGNAL_API_KEY: Optional[str] = None
    BUS_OPERATOR_NOTIFIER_API_URL: Optional[str] = None
    BUS_OPERATOR_NOTIFIER_API_KEY: Optional[str] = None

    # Journey Store Settings
    REDIS_URL: str = 'redis://localhost:6379/0'
    JOURNEY_KEY_PREFIX: str = 'tracked_journey'

    class Config:
        env_file = str(BASE_DIR / '.env')
        case_sensitive = True

@lru_cache()
def get_settings() -> Settings:
    return Settings()

settings = get_settings()
