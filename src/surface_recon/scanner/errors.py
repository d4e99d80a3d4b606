"""Exception types raised by the recon engine.

Callers tell a policy refusal from a network failure by type, never by
message text:

- PolicyBlocked: the request would leave the allowed surface (protocol,
  host list, private address, DNS rebinding, unsafe redirect). Fatal to
  that request.
- TooManyRedirects: a redirect chain went past the policy's hop cap.
- TransportFailure: DNS, connect, TLS, timeout, or read errors. Never fatal
  to a whole scan.
- InvalidTarget: the scan input itself cannot be used; raised before any
  network activity.
"""


class ReconError(Exception):
    """Base class for all engine errors."""


class PolicyBlocked(ReconError):
    """Request refused by the SSRF policy."""

    def __init__(self, message: str, url: str = ""):
        super().__init__(message)
        self.url = url


class TooManyRedirects(ReconError):
    """Redirect chain exceeded ScanPolicy.max_redirects."""

    def __init__(self, url: str, limit: int):
        super().__init__(f"Too many redirects (limit {limit}) starting at {url}")
        self.url = url
        self.limit = limit


class TransportFailure(ReconError):
    """Network-level failure talking to an allowed target."""

    def __init__(self, message: str, url: str = ""):
        super().__init__(message)
        self.url = url


class InvalidTarget(ReconError, ValueError):
    """Scan input could not be parsed into a usable target."""
