"""Researcher location feed and day-route reconstruction."""
import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import List, Optional, Tuple

from ..context import SessionContext
from ..domain import LocationPoint
from ..errors import ValidationError
from . import data_access

logger = logging.getLogger(__name__)

PERMISSION_DENIED = 1
POSITION_UNAVAILABLE = 2
TIMEOUT = 3
# sampling options handed to the device's position watcher
WATCH_OPTIONS = {'enableHighAccuracy': True, 'timeout': 20000, 'maximumAge': 0}

PERMISSION_DENIED_MESSAGE = (
    'Para usar o rastreamento, por favor, habilite a permissão de localização '
    'para este site nas configurações do seu navegador.'
)
NO_DATA_MESSAGE = 'Nenhum dado de localização para esta data.'


@dataclass
class TrackingFeed:
    """Per-researcher sampling state.

    Tracking runs between `start()` (after authentication) and `stop()` (logout
    or leaving the home view). Samples are fire-and-forget.
    """

    context: SessionContext
    active: bool = False
    permission_notice_shown: bool = False

    def start(self) -> dict:
        if self.context.is_researcher:
            self.active = True
        return {'active': self.active, 'options': WATCH_OPTIONS}

    def stop(self) -> None:
        self.active = False

    def record_sample(self, latitude, longitude, timestamp: Optional[datetime] = None) -> bool:
        if not self.active:
            return False
        return data_access.add_location_update(self.context.profile_id, latitude, longitude, timestamp)

    def report_error(self, code: int, message: str = '') -> Optional[str]:
        """Log a position error. Returns the user notice for the first permission denial only."""
        logger.error('Geolocation error for researcher %s: code=%s %s', self.context.profile_id, code, message)
        if code == PERMISSION_DENIED:
            self.active = False
            if not self.permission_notice_shown:
                self.permission_notice_shown = True
                return PERMISSION_DENIED_MESSAGE
        return None

    def to_state(self) -> dict:
        return {'active': self.active, 'permissionNoticeShown': self.permission_notice_shown}

    @classmethod
    def from_state(cls, context: SessionContext, state: Optional[dict]) -> 'TrackingFeed':
        state = state or {}
        return cls(context, active=bool(state.get('active')),
                   permission_notice_shown=bool(state.get('permissionNoticeShown')))


def day_window(day: str) -> Tuple[datetime, datetime]:
    """[day 00:00:00Z, day 23:59:59Z] as naive UTC datetimes."""
    try:
        d = date.fromisoformat(day)
    except (TypeError, ValueError):
        raise ValidationError('Data inválida. Use AAAA-MM-DD.', code='invalid_date')
    return datetime.combine(d, time(0, 0, 0)), datetime.combine(d, time(23, 59, 59))


def build_route(points: List[LocationPoint]) -> dict:
    """Map-ready route: connected path plus distinguished start and end markers."""
    if not points:
        return {'points': [], 'path': [], 'start': None, 'end': None, 'empty': True, 'message': NO_DATA_MESSAGE}
    return {
        'points': [p.to_dict() for p in points],
        'path': [[p.latitude, p.longitude] for p in points],
        'start': points[0].to_dict(),
        'end': points[-1].to_dict(),
        'empty': False,
        'message': None,
    }


def get_route(researcher_id: str, day: str) -> dict:
    start, end = day_window(day)
    points = data_access.get_researcher_route(researcher_id, start, end)
    route = build_route(points)
    route.update({'researcherId': researcher_id, 'date': day})
    return route
