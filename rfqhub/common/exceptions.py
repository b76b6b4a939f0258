from fastapi import HTTPException, status


class RFQHubException(HTTPException):
    def __init__(self, detail, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR):
        super().__init__(status_code=status_code, detail=detail)


class ValidationError(RFQHubException):
    def __init__(self, detail: str):
        super().__init__(detail=detail, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)


class NotFoundError(RFQHubException):
    def __init__(self, resource: str, resource_id: str | None = None):
        detail = f"{resource} not found"
        if resource_id:
            detail = f"{resource} '{resource_id}' not found"
        super().__init__(detail=detail, status_code=status.HTTP_404_NOT_FOUND)


class AuthorizationError(RFQHubException):
    def __init__(self, detail: str = "You do not have permission to perform this action"):
        super().__init__(detail=detail, status_code=status.HTTP_403_FORBIDDEN)


class ConflictError(RFQHubException):
    """The record is no longer in the state the transition requires."""

    def __init__(self, detail: str):
        super().__init__(detail=detail, status_code=status.HTTP_409_CONFLICT)


class RateLimitError(RFQHubException):
    def __init__(self, kind: str, count: int, limit: int):
        self.count = count
        self.limit = limit
        super().__init__(
            detail={
                "message": f"Daily {kind} limit reached ({count}/{limit}). Try again tomorrow.",
                "count": count,
                "limit": limit,
            },
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        )


class DownstreamChannelError(Exception):
    """A fan-out channel (email, webhook, AI, in-app insert) failed for one recipient."""

    def __init__(self, channel: str, recipient: str | None, event: str, detail: str | None = None):
        self.channel = channel
        self.recipient = recipient
        self.event = event
        msg = f"{channel} delivery failed for event={event} recipient={recipient or '-'}"
        if detail:
            msg += f" - {detail}"
        super().__init__(msg)
