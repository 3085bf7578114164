"""Configuration records for receivers and the keyed collection holding them."""

import logging
import math
from dataclasses import dataclass, fields
from typing import Any, Iterator, Optional

from pyavrbridge.exceptions import InvalidInput
from pyavrbridge.volume import MAX_VOLUME, MIN_VOLUME, VOLUME_STEPS

DEFAULT_FAMILY = "yamaha-avr"
DEFAULT_POLL_INTERVAL = 5  # seconds
DEFAULT_VOLUME_CEILING = MAX_VOLUME
DEFAULT_VOLUME_STEP = 0.5

_LOGGER = logging.getLogger(__name__)


@dataclass
class ConfigRecord:
    """Persisted configuration of one physical receiver.

    ``id`` is the receiver serial and never changes once assigned. Everything
    else may be edited; a running device reads these fields on every
    operation, so edits apply without rebuilding it.
    """

    id: str = ""
    address: str = ""
    display_name: str = ""
    model: str = ""
    zone_count: int = 1
    active_zone: int = 1
    volume_ceiling: float = DEFAULT_VOLUME_CEILING
    volume_step: float = DEFAULT_VOLUME_STEP
    poll_interval_seconds: int = DEFAULT_POLL_INTERVAL
    family: str = DEFAULT_FAMILY

    @property
    def name(self) -> str:
        """Display name, falling back to model and serial."""
        return self.display_name or self.model or self.id

    def validate(self):
        """Raise InvalidInput if the record breaks an invariant."""
        if self.zone_count < 1:
            raise InvalidInput(f"Invalid zone count {self.zone_count}, must be at least 1")
        if not (1 <= self.active_zone <= self.zone_count):
            raise InvalidInput(
                f"Invalid active zone {self.active_zone}, must be 1-{self.zone_count}"
            )
        if not math.isfinite(self.volume_ceiling) or not (MIN_VOLUME < self.volume_ceiling <= MAX_VOLUME):
            raise InvalidInput(
                f"Invalid volume ceiling {self.volume_ceiling}, "
                f"must be above {MIN_VOLUME} dB and at most {MAX_VOLUME} dB"
            )
        if self.volume_step not in VOLUME_STEPS:
            raise InvalidInput(
                f"Invalid volume step {self.volume_step}, must be one of {VOLUME_STEPS}"
            )
        if self.poll_interval_seconds < 1:
            raise InvalidInput(
                f"Invalid poll interval {self.poll_interval_seconds}, must be at least 1 second"
            )

    def merge_from(self, other: "ConfigRecord"):
        """Copy the mutable fields of ``other`` into this record in place.

        Identity is left alone. The caller validates ``other`` first so the
        record is never left half-merged.
        """
        self.address = other.address
        if other.display_name:
            self.display_name = other.display_name
        if other.model:
            self.model = other.model
        self.zone_count = other.zone_count
        self.active_zone = other.active_zone
        self.volume_ceiling = other.volume_ceiling
        self.volume_step = other.volume_step
        self.poll_interval_seconds = other.poll_interval_seconds

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConfigRecord":
        """Build a record from stored data.

        Numbers may arrive as strings; older configurations stored every
        field that way. A zero or missing poll interval means the default.
        """
        try:
            record = cls(
                id=str(data.get("id", "")),
                address=str(data.get("address", "")),
                display_name=str(data.get("display_name", "")),
                model=str(data.get("model", "")),
                zone_count=int(data.get("zone_count", 1)),
                active_zone=int(data.get("active_zone", 1)),
                volume_ceiling=float(data.get("volume_ceiling", DEFAULT_VOLUME_CEILING)),
                volume_step=float(data.get("volume_step", DEFAULT_VOLUME_STEP)),
                poll_interval_seconds=int(data.get("poll_interval_seconds") or 0) or DEFAULT_POLL_INTERVAL,
                family=str(data.get("family", DEFAULT_FAMILY)),
            )
        except (TypeError, ValueError) as err:
            raise InvalidInput(f"Malformed configuration field: {err}") from err
        return record


class ConfigStore:
    """Keyed collection of config records, one per receiver serial."""

    def __init__(self, records=None):
        self._records: dict[str, ConfigRecord] = {}
        for record in records or []:
            self.add(record)

    def __contains__(self, record_id: str) -> bool:
        return record_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ConfigRecord]:
        return iter(list(self._records.values()))

    def get(self, record_id: str) -> Optional[ConfigRecord]:
        return self._records.get(record_id)

    def add(self, record: ConfigRecord):
        if record.id in self._records:
            raise InvalidInput(f"Duplicate receiver id {record.id}")
        self._records[record.id] = record
        _LOGGER.debug(f"Stored config for {record.id} ({record.address})")

    def remove(self, record_id: str) -> Optional[ConfigRecord]:
        return self._records.pop(record_id, None)

    def records(self) -> list[ConfigRecord]:
        """Snapshot of all records."""
        return list(self._records.values())
