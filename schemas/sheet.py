from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class SheetMode(str, Enum):
    IDLE = "idle"
    DETAIL = "detail"
    TRIP = "trip"
    BOOKING = "booking"
    REQUEST = "request"


class RequestPhase(str, Enum):
    CONFIRMING = "confirming"
    DISPATCHED = "dispatched"


class SheetGeometry(BaseModel):
    """Device measurements reported by the client, in points."""
    screen_height: float
    inset_top: float = 0
    inset_bottom: float = 0
    tab_bar_height: float = 85
    search_bar_area: float = 120
    margin_above_tab_bar: float = 16


class SheetChange(BaseModel):
    index: int
    tab_bar_visible: bool
    reset_header: bool = False
    haptic: Optional[str] = None


class SheetState(BaseModel):
    mode: SheetMode
    request_phase: Optional[RequestPhase] = None
    snap_points: List[str]
    current_snap_index: int


class SheetModeUpdate(BaseModel):
    mode: SheetMode
    request_phase: Optional[RequestPhase] = None


class SheetIndexUpdate(BaseModel):
    # -1 is the closed sheet
    index: int = Field(ge=-1)
