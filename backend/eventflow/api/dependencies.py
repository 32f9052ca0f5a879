"""
FastAPI dependencies resolving the coordinators wired onto app.state.
"""

from fastapi import Request

from eventflow.services.cancellation import CancellationCompensator
from eventflow.services.reservation import ReservationCoordinator


def get_reservation_coordinator(request: Request) -> ReservationCoordinator:
    return request.app.state.reservations


def get_cancellation_compensator(request: Request) -> CancellationCompensator:
    return request.app.state.cancellations
