"""HTTP reachability probes for published download URLs.

This module provides:
- HttpProbe: Protocol for status probes (injectable for tests)
- UrllibProbe: Real implementation using urllib HEAD requests
- MockHttpProbe: Mock implementation for testing
"""

from __future__ import annotations

import ssl
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from shipit import __version__
from shipit.core.result import Err, Ok, Result

__all__ = [
    "HttpError",
    "HttpProbe",
    "MockHttpProbe",
    "UrllibProbe",
]


@dataclass(frozen=True, slots=True)
class HttpError:
    """Network-level failure: no HTTP status was received.

    Attributes:
        url: The URL that failed
        message: Human-readable error message
    """

    url: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} ({self.url})"


@runtime_checkable
class HttpProbe(Protocol):
    """Protocol for reachability probes."""

    def status(self, url: str) -> Result[int, HttpError]:
        """Return the final HTTP status code for ``url`` after redirects.

        HTTP error statuses (404, 500, ...) are Ok values; only failures
        where no status was received are Err.
        """
        ...


class UrllibProbe:
    """HEAD-request probe using urllib with system certificates.

    Redirects are followed, so a GitHub release download resolves to the
    status of the final asset storage URL.
    """

    def __init__(self, timeout: float = 30.0, user_agent: str | None = None) -> None:
        self.timeout = timeout
        self.user_agent = user_agent or f"shipit/{__version__}"
        self._ssl_context = ssl.create_default_context()

    def status(self, url: str) -> Result[int, HttpError]:
        try:
            req = urllib.request.Request(
                url,
                method="HEAD",
                headers={"User-Agent": self.user_agent},
            )
            with urllib.request.urlopen(
                req,
                timeout=self.timeout,
                context=self._ssl_context,
            ) as response:
                return Ok(int(response.status))
        except urllib.error.HTTPError as e:
            return Ok(int(e.code))
        except urllib.error.URLError as e:
            return Err(HttpError(url=url, message=str(e.reason)))
        except TimeoutError:
            return Err(HttpError(url=url, message="Request timed out"))
        except ValueError as e:
            return Err(HttpError(url=url, message=str(e)))
        except OSError as e:
            return Err(HttpError(url=url, message=str(e)))


class MockHttpProbe:
    """Mock probe for testing.

    Unknown URLs answer 404.

    Usage:
        probe = MockHttpProbe()
        probe.set_status("https://example.com/a.zip", 200)
        assert probe.status("https://example.com/a.zip") == Ok(200)
    """

    def __init__(self) -> None:
        self._responses: dict[str, int | HttpError] = {}
        self.calls: list[str] = []

    def set_status(self, url: str, response: int | HttpError) -> None:
        self._responses[url] = response

    def status(self, url: str) -> Result[int, HttpError]:
        self.calls.append(url)
        response = self._responses.get(url, 404)
        if isinstance(response, HttpError):
            return Err(response)
        return Ok(response)
