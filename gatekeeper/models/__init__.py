"""
Model package.

IMPORTANT (Alembic / SQLModel):
- Alembic autogenerate relies on `SQLModel.metadata`, which is populated only
  when the table models are imported.
- `alembic/env.py` imports `gatekeeper.models`, so this module must import all
  SQLModel `table=True` models to register them.
"""

from gatekeeper.auth.models import AuthSession, OtpCode  # noqa: F401
from gatekeeper.user.models import User  # noqa: F401
