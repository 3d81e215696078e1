from contextkit.store.archive import SqlContextArchive
from contextkit.store.memory import InMemoryContextStore, StoreActivity, StoreContext

__all__ = ["InMemoryContextStore", "SqlContextArchive", "StoreActivity", "StoreContext"]
