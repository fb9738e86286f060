from contextlib import asynccontextmanager

import logfire
import sentry_sdk
import uvicorn
from fastapi import FastAPI

from app.core.config import settings
from app.core.database import create_db_and_tables
from app.core.logging import get_logger
from app.integrations.views import router as integrations_router

logger = get_logger('relay')

# Initialize Logfire
if settings.logfire_token:
    logfire.configure(token=settings.logfire_token)

# Initialize Sentry
if settings.sentry_dsn:
    sentry_sdk.init(dsn=settings.sentry_dsn, traces_sample_rate=1.0)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan (startup and shutdown)"""
    logger.info('Starting Relay application')
    create_db_and_tables()
    yield
    logger.info('Shutting down Relay application')


app = FastAPI(
    title='Relay',
    description='Pushes form submissions to ActiveCampaign and SharpSpring',
    version='1.0.0',
    lifespan=lifespan,
)

# Instrument with Logfire
logfire.instrument_fastapi(app)


@app.get('/')
async def root():
    """Health check endpoint"""
    return {'status': 'ok', 'app': 'Relay', 'version': '1.0.0'}


@app.get('/health')
async def health():
    """Health check endpoint"""
    return {'status': 'healthy'}


app.include_router(integrations_router)


def run():
    """Serve the app with uvicorn, installed as the `relay` command"""
    uvicorn.run('app.main:app', host=settings.host, port=settings.port, reload=settings.dev_mode)


if __name__ == '__main__':
    run()
