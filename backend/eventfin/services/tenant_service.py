"""
Multi-Tenant Service: Event Ownership Checks

Every budget, expense and metric hangs off an event, and the event carries
org_id. Resolving the owning event and comparing its org_id with the
caller's is the single authorization check used by every service.

ORDER: existence first (NotFoundError), then ownership (ForbiddenError).
Both checks run before any write.
"""

from flask import current_app, has_app_context

from ..extensions import db
from ..errors import NotFoundError, ForbiddenError
from ..models import Event


def get_event(event_id: int) -> Event | None:
    """Return the event or None."""
    return db.session.get(Event, event_id)


def require_event_in_org(event_id: int, org_id: int) -> Event:
    """
    Validate that an event exists and belongs to the organization.

    Raises:
        NotFoundError: event does not exist
        ForbiddenError: event belongs to another organization
    """
    event = get_event(event_id)
    if not event:
        raise NotFoundError("Event not found")
    require_same_org(event.org_id, org_id, resource=f"event {event_id}")
    return event


def require_same_org(owner_org_id: int, org_id: int, *, resource: str) -> None:
    """Raise ForbiddenError unless owner_org_id equals org_id."""
    if owner_org_id != org_id:
        if has_app_context():
            current_app.logger.warning(
                "Cross-organization access denied: org %s attempted %s (owned by org %s)",
                org_id, resource, owner_org_id,
            )
        raise ForbiddenError("Access denied to this resource")
