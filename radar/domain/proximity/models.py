"""Domain models used by the proximity matcher."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from radar.domain.location.models import Coordinate


@dataclass(frozen=True, slots=True)
class TrackedUser:
	"""A user surfaced on the radar.

	``has_real_location`` separates "same bucket" (distance 0) from
	"location unknown" (distance None).
	"""

	user_id: str
	display_name: str
	coordinate: Optional[Coordinate] = None
	distance_km: Optional[float] = None
	has_real_location: bool = False
	bio: Optional[str] = None
	avatar_url: Optional[str] = None

	def sort_key(self) -> tuple[str, str]:
		return (self.display_name.casefold(), self.user_id)
