"""Domain-specific exceptions."""


class ServiceError(Exception):
    pass


class CatalogLoadError(ServiceError):
    """The service catalog source is unreachable or malformed."""
