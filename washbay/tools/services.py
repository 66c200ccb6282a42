"""Service catalog with categories, durations, and body-type price tables."""

import logging
from typing import Optional, TypedDict, Union

from pydantic import ValidationError

from washbay.errors import BookingEngineError
from washbay.schemas.pricing_schema import ServiceDefinition
from washbay.tools.runtime import failure, get_engine

logger = logging.getLogger(__name__)


class ServiceResult(TypedDict, total=False):
    success: bool
    message: str
    error: str
    service: dict


# Starter menu used by the console demo and the CLI
DEMO_SERVICES: dict[str, dict] = {
    "exterior-wash": {
        "name": "Exterior Wash",
        "category": "wash",
        "duration_minutes": 30,
        "body_type_pricing": {"Sedan": "20.00", "SUV": "25.00", "Van": "30.00"},
    },
    "full-valet": {
        "name": "Full Valet",
        "category": "wash",
        "duration_minutes": 60,
        "body_type_pricing": {"Sedan": "45.00", "SUV": "55.00", "Van": "65.00"},
    },
    "interior-detail": {
        "name": "Interior Detail",
        "category": "detailing",
        "duration_minutes": 90,
        "body_type_pricing": {"Sedan": "80.00", "SUV": "95.00"},
    },
    "collect-and-wash": {
        "name": "Collect & Wash",
        "category": "wash",
        "service_type": "pick_by_me",
        "duration_minutes": 45,
        "body_type_pricing": {"Sedan": "35.00", "SUV": "40.00"},
    },
}


def register_service(
    service_id: str,
    partner_id: str,
    name: str,
    body_type_pricing: dict[str, Union[str, float]],
    category: str = "wash",
    service_type: str = "book_me",
    duration_minutes: int = 30,
) -> ServiceResult:
    """Add or replace a service in the catalog."""
    try:
        service = ServiceDefinition(
            service_id=service_id,
            partner_id=partner_id,
            name=name,
            category=category,
            service_type=service_type,
            duration_minutes=duration_minutes,
            body_type_pricing=[
                {"body_type": body_type, "price": price}
                for body_type, price in body_type_pricing.items()
            ],
        )
        get_engine().services.register(service)
    except (BookingEngineError, ValidationError) as exc:
        return failure(exc)

    return {
        "success": True,
        "message": f"Service {name} registered.",
        "service": service.model_dump(mode="json"),
    }


def register_demo_services(partner_id: str) -> list[str]:
    """Register the starter menu for a partner; returns the service ids."""
    ids = []
    for key, info in DEMO_SERVICES.items():
        service_id = f"{partner_id}-{key}"
        result = register_service(service_id=service_id, partner_id=partner_id, **info)
        if not result["success"]:
            raise ValueError(f"Demo service {key} is invalid: {result['message']}")
        ids.append(service_id)
    logger.debug("Registered %d demo services for %s", len(ids), partner_id)
    return ids


def get_service(service_id: str) -> Optional[dict]:
    """Look up a service by id."""
    try:
        return get_engine().services.get(service_id).model_dump(mode="json")
    except BookingEngineError:
        return None


def get_all_services(partner_id: Optional[str] = None) -> list[dict]:
    """Return every service, optionally only one partner's."""
    return [
        s.model_dump(mode="json")
        for s in get_engine().services.list_services(partner_id)
    ]
