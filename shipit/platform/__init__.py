"""Platform abstraction layer."""

from .files import atomic_write_bytes, atomic_write_text
from .http import HttpError, HttpProbe, MockHttpProbe, UrllibProbe
from .process import ProcessError, run, run_silent

__all__ = [
    # files
    "atomic_write_bytes",
    "atomic_write_text",
    # http
    "HttpError",
    "HttpProbe",
    "MockHttpProbe",
    "UrllibProbe",
    # process
    "ProcessError",
    "run",
    "run_silent",
]
