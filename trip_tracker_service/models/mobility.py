"""Traveler mobility profile and its reduction to a single mobility mode."""
from enum import Enum
from typing import List, Optional, Set
from pydantic import BaseModel, Field

MOBILITY_MODE_NONE = "None"

# Devices in priority order; the first one present defines the base mode.
WHEELCHAIR_MODES = (
    ("manual wheelchair", "WChairM"),
    ("electric wheelchair", "WChairE"),
    ("mobility scooter", "MScooter"),
)
ASSISTIVE_DEVICES = {"cane", "crutches", "walker", "service animal"}
BLIND_DEVICES = {"white cane"}

MOBILITY_CODES = {
    "None": 0,
    "Device": 1,
    "MScooter": 2,
    "WChairE": 3,
    "WChairM": 4,
    "Some": 5,
    "LowVision": 6,
    "Blind": 7,
    "Device-LowVision": 8,
    "MScooter-LowVision": 9,
    "WChairE-LowVision": 10,
    "WChairM-LowVision": 11,
    "Some-LowVision": 12,
    "Device-Blind": 13,
    "MScooter-Blind": 14,
    "WChairE-Blind": 15,
    "WChairM-Blind": 16,
    "Some-Blind": 17,
}


class VisionLimitation(str, Enum):
    LEGALLY_BLIND = "legally blind"
    LOW_VISION = "low-vision"
    NONE = "none"


class MobilityProfile(BaseModel):
    """Traveler-supplied mobility information."""
    is_mobility_limited: bool = Field(False, description="Whether the traveler is slower than average")
    mobility_devices: List[str] = Field(default_factory=list, description="Assistive devices used")
    vision_limitation: Optional[VisionLimitation] = Field(None, description="Level of vision limitation")

    @property
    def mobility_mode(self) -> str:
        devices: Set[str] = {d.strip().lower() for d in self.mobility_devices}

        base = MOBILITY_MODE_NONE
        if "none" not in devices:
            for device, mode in WHEELCHAIR_MODES:
                if device in devices:
                    base = mode
                    break
            else:
                if devices & ASSISTIVE_DEVICES:
                    base = "Device"
        if base == MOBILITY_MODE_NONE and self.is_mobility_limited:
            base = "Some"

        vision = None
        if self.vision_limitation == VisionLimitation.LOW_VISION:
            vision = "LowVision"
        elif self.vision_limitation == VisionLimitation.LEGALLY_BLIND:
            vision = "Blind"
        elif self.vision_limitation is None and "none" not in devices and devices & BLIND_DEVICES:
            vision = "Blind"

        if vision is None:
            return base
        if base == MOBILITY_MODE_NONE:
            return vision
        return f"{base}-{vision}"


def get_mobility_codes(mobility_mode: Optional[str]) -> List[int]:
    """Codes for the bus-operator API; unknown modes fall back to 'None' (0)."""
    return [MOBILITY_CODES.get(mobility_mode, 0)]


def needs_extended_phase(mobility_mode: Optional[str]) -> bool:
    """Whether a traveler needs extra time to cross a signaled intersection."""
    return mobility_mode is not None and mobility_mode.lower() != MOBILITY_MODE_NONE.lower()
