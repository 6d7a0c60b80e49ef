from filplus.application.queries.application_queries import (
    GetApplication,
    GetApplicationHandler,
    GetApplications,
    GetApplicationsHandler,
)

__all__ = [
    "GetApplication",
    "GetApplicationHandler",
    "GetApplications",
    "GetApplicationsHandler",
]
