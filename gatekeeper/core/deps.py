"""Centralized dependency type aliases for FastAPI routes.

Auth-specific dependencies live in ``gatekeeper.auth.dependencies``; this
module only carries the ones every domain needs:
    from gatekeeper.core.deps import ClockDep, SessionDep, SettingsDep
"""

from typing import Annotated

from fastapi import Depends
from sqlmodel import Session

from gatekeeper.core.mixins import Clock, utc_now
from gatekeeper.core.settings import Settings, get_settings
from gatekeeper.db.engine import get_session


def get_clock() -> Clock:
    """Time source for expiry checks; overridden in tests."""
    return utc_now


# Database session
SessionDep = Annotated[Session, Depends(get_session)]

# Application settings
SettingsDep = Annotated[Settings, Depends(get_settings)]

# Current time provider
ClockDep = Annotated[Clock, Depends(get_clock)]
