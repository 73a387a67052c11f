"""
rankkeeper/app.py
Composition root: wires the store, sync engine, battle recorder and ranking view
for one process.
"""

from dataclasses import dataclass
from typing import Callable, Optional
from rankkeeper.battle import BattleRecorder
from rankkeeper.cloud_sync import SyncEngine
from rankkeeper.configuration import Configuration
from rankkeeper.events import StoreEvents
from rankkeeper.logger import create_logger
from rankkeeper.rating_store import RatingStore
from rankkeeper.ranking_view import RankingView
from rankkeeper.remote import CloudClient
from rankkeeper.reorder import ManualReorderAdjuster
from rankkeeper.scheduler import ThreadScheduler

logger = create_logger()


@dataclass
class Application:
    config: Configuration
    store: RatingStore
    engine: SyncEngine
    view: RankingView
    recorder: BattleRecorder
    scheduler: object

    def wait_for_sync(self, timeout: Optional[float] = None) -> None:
        """Block until scheduled background sync work has finished"""
        self.scheduler.drain(timeout)

    def close(self) -> None:
        self.engine.close()
        self.view.close()


def build_client(config: Configuration) -> Optional[CloudClient]:
    cloud = config.cloud
    if not cloud.enabled:
        return None
    if not cloud.base_url:
        logger.warning("Cloud sync is enabled but no base_url is configured")
        return None
    return CloudClient(cloud)


def build_application(
    config: Optional[Configuration] = None,
    scheduler=None,
    client: Optional[CloudClient] = None,
    on_warning: Optional[Callable[[str], None]] = None,
    store_location: Optional[str] = None,
) -> Application:
    """Load the persisted store and start synchronization"""
    config = config or Configuration()
    scheduler = scheduler or ThreadScheduler()
    client = client or build_client(config)

    store = RatingStore(store_location or config.store_path, events=StoreEvents())
    store.load()

    engine = SyncEngine(
        store,
        client,
        scheduler=scheduler,
        incremental=config.cloud.incremental,
        on_warning=on_warning,
    )
    view = RankingView(store, ManualReorderAdjuster(config.reorder), config)
    recorder = BattleRecorder(store)

    engine.start()
    if config.cloud.pull_interval:
        engine.start_auto_pull(config.cloud.pull_interval)

    logger.info(
        f"Application ready: session {store.session_id}, "
        f"cloud {'enabled' if client else 'disabled'}"
    )
    return Application(config, store, engine, view, recorder, scheduler)
