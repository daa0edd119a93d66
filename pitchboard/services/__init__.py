"""
Pitchboard service wiring.

One SyncContext per Flask app, stored in ``app.extensions["pitchboard"]``:

    store        PrimaryStore (sql or rest, from PRIMARY_STORE)
    mirror       LocalCacheMirror (from CACHE_URL)
    state        ApplicationStateCache
    gateway      SyncGateway
    restorer     RestoreOrchestrator

Usage:
    from pitchboard.services import get_sync
    sync = get_sync()          # inside an app context
    sync.gateway.insert("winners", {...})
"""

import logging

from flask import current_app

from pitchboard.integrations.sql_store import SqlPrimaryStore
from pitchboard.integrations.store_gateway import RestPrimaryStore
from pitchboard.services.cache_mirror import LocalCacheMirror
from pitchboard.services.restore_service import RestoreOrchestrator
from pitchboard.services.state_cache import ApplicationStateCache
from pitchboard.services.sync_gateway import SyncGateway

logger = logging.getLogger(__name__)

EXTENSION_KEY = "pitchboard"


class SyncContext:
    def __init__(self, store, mirror, state=None):
        self.store = store
        self.mirror = mirror
        self.state = state or ApplicationStateCache()
        self.gateway = SyncGateway(store, mirror, self.state)
        self.restorer = RestoreOrchestrator(self.gateway)
        self.loaded = False

    def ensure_loaded(self):
        """Populate the state cache once per process (store, else mirror)."""
        if not self.loaded:
            self.gateway.load_all()
            self.loaded = True
        return self


def build_store(app):
    backend = app.config.get("PRIMARY_STORE", "sql")
    if backend == "rest":
        return RestPrimaryStore(
            app.config["SUPABASE_URL"],
            app.config["SUPABASE_KEY"],
            timeout=app.config.get("STORE_TIMEOUT", 30),
        )
    if backend != "sql":
        raise RuntimeError(f"Unknown PRIMARY_STORE: {backend!r} (expected 'sql' or 'rest')")
    return SqlPrimaryStore()


def init_sync(app, store=None, mirror=None):
    """Create the SyncContext for *app*. Tests may inject store / mirror."""
    ctx = SyncContext(
        store or build_store(app),
        mirror or LocalCacheMirror.from_url(app.config.get("CACHE_URL")),
    )
    app.extensions[EXTENSION_KEY] = ctx
    logger.info("Sync initialised: store=%s cache=%s", ctx.store.name, ctx.mirror.backend_name)
    return ctx


def get_sync():
    """Return the current app's SyncContext with its state cache populated."""
    return current_app.extensions[EXTENSION_KEY].ensure_loaded()
