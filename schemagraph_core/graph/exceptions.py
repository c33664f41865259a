"""Graph model exceptions."""


class GraphModelError(ValueError):
    """Base class for graph model construction errors.

    Raised only while a dataset is being built, when an invalid attribute,
    entity or relationship is added.
    """

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors: list[str] = list(errors or [])


class InvalidAttributeError(GraphModelError):
    """Raised when an invalid attribute is added to an entity."""

    pass


class InvalidEntityError(GraphModelError):
    """Raised when an invalid entity is added to a dataset."""

    pass


class InvalidRelationshipError(GraphModelError):
    """Raised when an invalid relationship is added to a dataset.

    This covers blank ids or type, an unknown cardinality, metadata that is
    not a JSON-compatible dict, and self-loops not marked as
    ``self_referential``.
    """

    pass
