"""Exceptions raised by jax_liegroups."""


class DimensionMismatchError(ValueError):
    """A vector passed to a constructor does not have the required size.

    Attributes:
        expected: Number of entries the constructor requires.
        actual: Number of entries that were passed.
    """

    def __init__(self, expected: int, actual: int, what: str = "vector"):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Tried to initialize a {what} from a vector of dimension {actual}, "
            f"expected dimension {expected}"
        )
