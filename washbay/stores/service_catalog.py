"""In-memory service catalog: each service's category, duration and price table."""

import logging
import threading
from typing import Optional

from washbay.errors import NotFound
from washbay.schemas.pricing_schema import ServiceDefinition

logger = logging.getLogger(__name__)


class ServiceCatalog:
    def __init__(self) -> None:
        self._services: dict[str, ServiceDefinition] = {}
        self._lock = threading.RLock()

    def register(self, service: ServiceDefinition) -> ServiceDefinition:
        with self._lock:
            self._services[service.service_id] = service.model_copy(deep=True)
        logger.debug("Service registered: %s (%s)", service.service_id, service.name)
        return service

    def get(self, service_id: str) -> ServiceDefinition:
        """Return a service by id.

        Raises:
            NotFound: If the service is not registered.
        """
        with self._lock:
            service = self._services.get(service_id)
        if service is None:
            raise NotFound(f"Service {service_id} not found.")
        return service.model_copy(deep=True)

    def list_services(self, partner_id: Optional[str] = None) -> list[ServiceDefinition]:
        with self._lock:
            services = [
                s.model_copy(deep=True)
                for s in self._services.values()
                if partner_id is None or s.partner_id == partner_id
            ]
        return sorted(services, key=lambda s: s.service_id)

    def reset(self) -> None:
        with self._lock:
            self._services.clear()
