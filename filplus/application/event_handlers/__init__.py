"""Event bus subscribers: read-model projectors and the broker forwarder."""

from filplus.application.event_handlers.integration import EventForwarder
from filplus.application.event_handlers.projectors import (
    AllocatorMultisigUpdatedProjector,
    DatacapRefreshRequestedProjector,
    build_projectors,
    register_projectors,
)

__all__ = [
    "AllocatorMultisigUpdatedProjector",
    "DatacapRefreshRequestedProjector",
    "EventForwarder",
    "build_projectors",
    "register_projectors",
]
