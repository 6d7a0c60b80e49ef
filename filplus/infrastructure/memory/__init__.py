from filplus.infrastructure.memory.application_details_memory import InMemoryApplicationDetailsStore
from filplus.infrastructure.memory.event_store_memory import InMemoryEventStore

__all__ = ["InMemoryApplicationDetailsStore", "InMemoryEventStore"]
