from app.models.availability import AvailabilityBlockWrite


class UpsertAvailabilityRequest(AvailabilityBlockWrite):
    """Creates a block when ``id`` is omitted, otherwise updates that block."""

    id: int | None = None
