"""
Application State Cache: in-memory ordered view per collection.

Collaborators read immutable tuples; only the sync gateway and the restore
orchestrator install new views.
"""

from pitchboard.models.records import COLLECTIONS, check_collection


class ApplicationStateCache:
    def __init__(self):
        self._views = {name: () for name in COLLECTIONS}

    def view(self, collection):
        """Ordered, read-only snapshot of *collection*."""
        return self._views[check_collection(collection)]

    def find(self, collection, record_id):
        for record in self.view(collection):
            if record.get("id") == record_id:
                return dict(record)
        return None

    def counts(self):
        return {name: len(records) for name, records in self._views.items()}

    def install(self, collection, records):
        self._views[check_collection(collection)] = tuple(dict(r) for r in records)

    def clear(self):
        for name in COLLECTIONS:
            self._views[name] = ()
