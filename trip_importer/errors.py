"""Domain errors raised by the import pipeline."""


class TripImportError(Exception):
    """Base class for import pipeline errors."""


class ExtractionError(TripImportError):
    """Every model tier failed to produce valid candidates for the content."""


class ResolutionError(TripImportError):
    """The duplicate arbitration call failed or returned an unusable verdict.

    Never surfaced to callers: the resolver maps it to a "not duplicate" decision.
    """


class PersistenceConflict(TripImportError):
    """The item store rejected a write that would break (trip, place id) uniqueness."""

    def __init__(self, trip_id: str, provider_place_id: str):
        self.trip_id = trip_id
        self.provider_place_id = provider_place_id
        super().__init__(
            f"Trip {trip_id} already has an item for place {provider_place_id}"
        )


class PreconditionFailure(TripImportError):
    """The trip's existing items could not be read; the whole batch is aborted."""


class TripNotFound(PreconditionFailure):
    """The trip referenced by an import does not exist."""

    def __init__(self, trip_id: str):
        self.trip_id = trip_id
        super().__init__(f"Trip {trip_id} not found")


class ItemNotFound(TripImportError):
    """No saved item exists with the given id."""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Saved item {item_id} not found")
