"""Exception types raised across the fusion pipeline."""


class WallFuseError(Exception):
    """Base class for wallfuse errors."""


class RasterShapeError(WallFuseError, ValueError):
    """A raster has zero dimensions, a bad buffer length or an unexpected size.

    Recovered locally: the raster is discarded and the last good state kept.
    """


class MissingInputError(WallFuseError):
    """No raster or no camera pose is available for this tick."""


class DuplicateSurfaceError(WallFuseError, KeyError):
    """The tracking subsystem reported an "added" event for a live surface id."""

    def __init__(self, surface_id: str):
        super().__init__(surface_id)
        self.surface_id = surface_id

    def __str__(self) -> str:
        return f"Surface '{self.surface_id}' already exists in the registry"
