"""
Active trip / booking state of one session.

The only shared mutable state of the emergency flow. The orchestrator starts
trips and bookings, the handlers stop them, the concurrency guard reads them.
"""

from typing import Optional

from core.logging import get_logger
from schemas.emergency import ActiveAmbulanceTrip, ActiveBedBooking, ServiceType

logger = get_logger(__name__)


class EmergencyState:
    def __init__(self):
        self.active_ambulance_trip: Optional[ActiveAmbulanceTrip] = None
        self.active_bed_booking: Optional[ActiveBedBooking] = None
        self.selected_hospital_id: Optional[str] = None

    def active_for(self, service_type: ServiceType):
        if ServiceType(service_type) == ServiceType.AMBULANCE:
            return self.active_ambulance_trip
        return self.active_bed_booking

    def start_ambulance_trip(self, trip: ActiveAmbulanceTrip) -> ActiveAmbulanceTrip:
        self.active_ambulance_trip = trip
        logger.info("Ambulance trip started", request_id=trip.request_id, hospital_id=trip.hospital_id)
        return trip

    def stop_ambulance_trip(self) -> None:
        if self.active_ambulance_trip:
            logger.info("Ambulance trip stopped", request_id=self.active_ambulance_trip.request_id)
        self.active_ambulance_trip = None

    def mark_ambulance_arrived(self) -> None:
        if self.active_ambulance_trip:
            self.active_ambulance_trip.arrived = True

    def start_bed_booking(self, booking: ActiveBedBooking) -> ActiveBedBooking:
        self.active_bed_booking = booking
        logger.info("Bed booking started", request_id=booking.request_id, hospital_id=booking.hospital_id)
        return booking

    def stop_bed_booking(self) -> None:
        if self.active_bed_booking:
            logger.info("Bed booking stopped", request_id=self.active_bed_booking.request_id)
        self.active_bed_booking = None

    def mark_bed_occupied(self) -> None:
        if self.active_bed_booking:
            self.active_bed_booking.occupied = True

    def select_hospital(self, hospital_id: Optional[str]) -> None:
        self.selected_hospital_id = hospital_id

    def clear_selected_hospital(self) -> None:
        self.selected_hospital_id = None
