# errors.py


class DataUnavailable(RuntimeError):
    """Source data (raster or precomputed results) cannot be reached."""


class DecodeFailure(RuntimeError):
    """Source data was reached but could not be decoded or read."""


class Superseded(Exception):
    """Work was abandoned because a newer request replaced it."""


class InvalidRequest(ValueError):
    """Caller-supplied input is out of range or malformed."""
