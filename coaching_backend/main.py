import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from coaching_backend.core import config
from coaching_backend.database import Base, SessionLocal, engine, ensure_appointment_schema
from coaching_backend.models import appointment, availability, setting, user  # noqa: F401
from coaching_backend.routes import appointment_routes, availability_routes, scheduling_routes
from coaching_backend.scheduling.errors import StoreUnavailable
from coaching_backend.scheduling.service import SchedulingService

logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=config.LOG_LEVEL,
)

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_scheduling() -> None:
    config.validate_runtime_config()

    try:
        Base.metadata.create_all(bind=engine)
        ensure_appointment_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')

    if getattr(app.state, 'scheduling', None) is None:
        app.state.scheduling = SchedulingService(SessionLocal)

    if config.AUTO_SCHEDULING_ON_STARTUP:
        try:
            app.state.scheduling.start()
        except StoreUnavailable:
            logger.exception('Could not read the auto-scheduling setting; timer left disarmed.')


@app.on_event('shutdown')
def stop_scheduling() -> None:
    service = getattr(app.state, 'scheduling', None)
    if service is not None:
        service.shutdown()


@app.get('/')
def root():
    return {'status': 'Coaching Scheduler API Running'}


app.include_router(scheduling_routes.router, prefix='/scheduling')
app.include_router(availability_routes.router, prefix='/availability')
app.include_router(appointment_routes.router, prefix='/appointments')
