"""Placeholder PullRequestService used when no code-hosting integration is wired."""

import logging

from filplus.application.exceptions import CollaboratorUnavailableError
from filplus.domain.models.application import Application, PullRequest

logger = logging.getLogger(__name__)


class DummyPullRequestService:
    """Logs the request and reports the service as unavailable; callers treat that as skipped enrichment."""

    async def create_pull_request(self, application: Application) -> PullRequest:
        logger.info(
            "pull_request_service_not_configured",
            extra={"application_id": application.application_id},
        )
        raise CollaboratorUnavailableError("Pull request service is not configured")
