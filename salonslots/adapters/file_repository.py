"""
File-backed salon data store.

Loads providers, services, appointments and blackouts from a YAML or JSON
document and serves them through the lookup protocols used by
``AvailabilityService``. Useful for local runs and tests without a database.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List

import yaml

from ..domain.exceptions import InvalidInputError, NotFoundError
from ..domain.models import Appointment, ProviderSchedule, ServiceVariant, TimeRange
from .schemas import ProviderModel, SalonDataModel, ServiceModel, parse_salon_data

logger = logging.getLogger(__name__)


class FileSalonRepository:
    """
    Read-only repository over a salon data file.

    The file is read once on construction; every lookup returns freshly built
    domain records, so callers can never mutate the repository's state.
    """

    def __init__(self, data: SalonDataModel):
        self._data = data
        self._providers: Dict[str, ProviderModel] = {p.id: p for p in data.providers}
        self._services: Dict[str, ServiceModel] = {s.id: s for s in data.services}

    @classmethod
    def from_file(cls, data_file: Path) -> "FileSalonRepository":
        """
        Load salon data from a ``.json``, ``.yaml`` or ``.yml`` file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            InvalidInputError: If the content is malformed
        """
        if not data_file.exists():
            raise FileNotFoundError(
                f"Salon data file not found: {data_file}\n"
                f"See salon.example.yaml for the expected format."
            )

        with open(data_file, "r", encoding="utf-8") as f:
            raw = f.read()

        try:
            if data_file.suffix.lower() == ".json":
                data = json.loads(raw)
            else:
                data = yaml.safe_load(raw)
        except (json.JSONDecodeError, yaml.YAMLError) as exc:
            raise InvalidInputError(f"Could not parse {data_file}: {exc}") from exc

        logger.info("Loaded salon data from %s", data_file)
        return cls(parse_salon_data(data))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FileSalonRepository":
        return cls(parse_salon_data(data))

    def list_providers(self) -> List[ProviderModel]:
        return list(self._data.providers)

    def list_services(self) -> List[ServiceModel]:
        return list(self._data.services)

    def get_schedule(self, provider_id: str) -> ProviderSchedule:
        """Return the schedule of a provider."""
        provider = self._providers.get(provider_id)
        if provider is None:
            raise NotFoundError(f"Provider '{provider_id}' not found")
        return provider.to_schedule()

    def get_variant(self, service_id: str, variant_name: str) -> ServiceVariant:
        """Return a service variant by service id and variant name."""
        service = self._services.get(service_id)
        if service is None:
            raise NotFoundError(f"Service '{service_id}' not found")
        return service.find_variant(variant_name).to_domain()

    def get_appointments(self, provider_id: str, window: TimeRange) -> List[Appointment]:
        """
        Return the provider's appointments overlapping ``window``.

        Cancelled appointments are included; the engine decides whether
        they block time.
        """
        appointments: List[Appointment] = []

        for record in self._data.appointments:
            if record.provider_id != provider_id:
                continue

            appointment = record.to_domain()
            if appointment.time_range.overlaps(window):
                appointments.append(appointment)

        return appointments

    def get_blackouts(self, window: TimeRange) -> List[TimeRange]:
        """Return salon-wide blackouts overlapping ``window``."""
        blackouts = [interval.to_domain() for interval in self._data.blackouts]
        return [blackout for blackout in blackouts if blackout.overlaps(window)]
