"""Service catalog offered in the service-selection list."""

import logging
from typing import Optional, TypedDict

logger = logging.getLogger(__name__)


class ServiceEntry(TypedDict):
    """A bookable service. ``id`` is the list-row token the customer taps."""

    id: str
    title: str
    description: str


SERVICES: list[ServiceEntry] = [
    {"id": "svc_plumber", "title": "Plumber", "description": "Leaks, pipes, boilers"},
    {"id": "svc_locksmith", "title": "Locksmith", "description": "Locks, keys, security"},
    {"id": "svc_electrician", "title": "Electrician", "description": "Wiring, fuses, sockets"},
    {"id": "svc_handyman", "title": "Handyman", "description": "General repairs & fixes"},
]


def get_service(service_id: str) -> Optional[ServiceEntry]:
    """Look up a service by its exact token. Returns None for unknown ids."""
    for service in SERVICES:
        if service["id"] == service_id:
            return service
    return None


def get_service_titles() -> list[str]:
    """Return the display titles of all services, in catalog order."""
    return [s["title"] for s in SERVICES]
