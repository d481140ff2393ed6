"""Domain exceptions shared across ingestion, retrieval and analytics."""


class DomainError(Exception):
    """Base class for all Equiscope domain errors."""

    pass


class RaceNotFoundError(DomainError):
    """Raised when a race is absent from the relational store."""

    def __init__(self, guid: str):
        super().__init__(f"Race not found: {guid}")
        self.guid = guid


class HorseNotFoundError(DomainError):
    """Raised when a horse slug is unknown."""

    def __init__(self, slug: str):
        super().__init__(f"Horse not found: {slug}")
        self.slug = slug


class UpstreamUnavailableError(DomainError):
    """Raised when the embedding service or a data collaborator fails."""

    def __init__(self, message: str, service: str = "embeddings"):
        super().__init__(f"{service} unavailable: {message}")
        self.service = service


class InvalidRaceIdError(DomainError, ValueError):
    """Raised when a race GUID does not follow YYYYMMDD_R<n>_C<n>."""

    pass
