"""
Request Context Data Model

Identity of the caller of an owner-facing route.
"""

from dataclasses import dataclass


@dataclass
class RequestContext:
    """
    Context established for an authenticated owner request.

    Attributes:
        user_id: Verified internal user id; compared against meetings.created_by_id
        request_id: UUID v4 uniquely identifying this request, for log correlation
    """
    user_id: str
    request_id: str
