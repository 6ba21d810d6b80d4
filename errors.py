"""Error kinds raised by the PlantOps core and handled by the API layer."""


class PlantOpsError(Exception):
    """Base class for every PlantOps error."""


class ValidationError(PlantOpsError, ValueError):
    """A required field is missing or a value is out of range."""


class NotFoundError(PlantOpsError, LookupError):
    """A referenced record (work order, unit, part, production record) does not exist."""


class StorageError(PlantOpsError):
    """Reading or writing persisted state failed."""


class NetworkError(PlantOpsError):
    """A remote fetch failed (only the initial unit roster bootstrap fetches anything)."""
