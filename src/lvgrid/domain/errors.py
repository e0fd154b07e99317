# lvgrid/domain/errors.py


class GridGenerationError(Exception):
    """Aborts the whole run; there is no safe partial result."""


class ConvexHullError(ValueError):
    """A convex hull could not be built from the given points."""


class ClusteringError(Exception):
    pass


class EmptyClusterError(ClusteringError):
    """A cluster lost all of its vertices. Retrying with fresh medoids may help."""


class UnconnectedClusterError(ClusteringError):
    """A cluster does not induce a connected subgraph. Processing may continue."""

    def __init__(self, message: str, *, cluster: int | None = None, parts: int = 0):
        super().__init__(message)
        self.cluster = cluster
        self.parts = parts
