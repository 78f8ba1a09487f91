"""
Wires the engine, session factory, live-query hub, worker pool and
controllers together from one Settings instance.
"""
import logging
from typing import Optional

from rideshare.core.config import Settings, settings as default_settings
from rideshare.core.executor import BackgroundExecutor
from rideshare.core.live import LiveQueryHub
from rideshare.db.session import create_db_engine, create_session_factory, init_db
from rideshare.services.booking_workflow import BookingWorkflowController
from rideshare.services.collaborators import SqlProfileDirectory, SqlCarCatalog, SqlRouteRegistry
from rideshare.services.search import TripSearchEngine
from rideshare.services.seat_inventory import SeatInventoryCoordinator
from rideshare.services.trip_lifecycle import TripLifecycleController

logger = logging.getLogger(__name__)


class ServiceContainer:
    """Everything a caller needs, built once per application (or test)."""

    def __init__(self, settings: Optional[Settings] = None, create_schema: bool = True):
        self.settings = settings or default_settings
        self.engine = create_db_engine(self.settings)
        if create_schema:
            init_db(self.engine)
        self.session_factory = create_session_factory(self.engine)
        self.hub = LiveQueryHub()
        self.executor = BackgroundExecutor(max_workers=self.settings.WORKER_POOL_SIZE)

        profiles = SqlProfileDirectory()
        cars = SqlCarCatalog()
        self.inventory = SeatInventoryCoordinator(clamp_to_capacity=self.settings.CLAMP_RELEASE_TO_CAPACITY)
        self.bookings = BookingWorkflowController(
            self.session_factory, self.inventory, profiles=profiles, hub=self.hub,
        )
        self.trips = TripLifecycleController(
            self.session_factory,
            settings=self.settings,
            hub=self.hub,
            profiles=profiles,
            cars=cars,
            routes=SqlRouteRegistry(),
        )
        self.search = TripSearchEngine(self.session_factory, settings=self.settings, profiles=profiles, cars=cars)
        logger.info("Service container ready (database: %s)", self.engine.url.render_as_string(hide_password=True))

    def close(self) -> None:
        logger.info("Closing service container (%d live subscription(s) open)", self.hub.subscriber_count())
        self.hub.close_all()
        self.executor.shutdown(wait=True)
        self.engine.dispose()

    def __enter__(self) -> "ServiceContainer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
