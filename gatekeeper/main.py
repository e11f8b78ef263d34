import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlmodel import Session

from gatekeeper.admin.service import bootstrap_super_admin
from gatekeeper.auth.maintenance import sweep_loop
from gatekeeper.auth.rate_limit import get_rate_limiter
from gatekeeper.core.cors import add_cors_middleware
from gatekeeper.core.exception_handlers import register_exception_handlers
from gatekeeper.core.http import close_sms_client
from gatekeeper.core.logging import configure_logging
from gatekeeper.core.request_logging import add_request_logging_middleware
from gatekeeper.core.settings import get_settings
from gatekeeper.db.engine import engine
from gatekeeper.notifications.email import init_resend
from gatekeeper.notifications.service import get_notifier
from gatekeeper.router import api_router

configure_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    settings = get_settings()
    init_resend(settings)

    if settings.bootstrap_super_admin:
        with Session(engine) as session:
            await bootstrap_super_admin(session, settings, get_notifier())

    sweeper = asyncio.create_task(sweep_loop(engine, get_rate_limiter(), settings))
    yield
    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweeper
    await close_sms_client()


app = FastAPI(title="Gatekeeper", version="0.1.0", lifespan=lifespan)

app.include_router(api_router)

add_request_logging_middleware(app)
add_cors_middleware(app)
register_exception_handlers(app)
