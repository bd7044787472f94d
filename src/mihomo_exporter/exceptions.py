# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Exception classes for the mihomo exporter.

All exceptions inherit from ExporterError, making it easy to catch
every exporter-originated failure with a single except clause.
"""


class ExporterError(Exception):
    """Base exception for all exporter errors.

    Example:
        try:
            traffic = await client.get_traffic()
        except ExporterError as e:
            logger.error(f"Exporter error: {e}")
    """

    pass


class UpstreamError(ExporterError):
    """Raised when the mihomo API returns an unusable response.

    Covers non-200 status codes, transport failures (connection refused,
    timeouts) and bodies that cannot be decoded into the expected model.
    Refresh loops catch this at the activation boundary and keep serving
    the previous snapshot.

    Attributes:
        endpoint: The API path that failed, e.g. "/connections".
            May be None if the request never got that far.
        status_code: HTTP status returned by the daemon, or None when no
            response was received or the body was the problem.

    Example:
        try:
            conns = await client.get_connections()
        except UpstreamError as e:
            if e.status_code == 401:
                logger.error("Check the API token")
    """

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code


class RequestCancelledError(ExporterError):
    """Raised when an in-flight API call is aborted by the stop signal.

    Attributes:
        endpoint: The API path whose request was aborted.
    """

    def __init__(self, endpoint: str | None = None):
        message = "Request cancelled"
        if endpoint:
            message = f"Request to {endpoint} cancelled"
        super().__init__(message)
        self.endpoint = endpoint


class ConfigurationError(ExporterError):
    """Raised when configuration is invalid.

    Raised at startup for an unparsable API URL, a non-positive refresh
    interval, a malformed listen address or an illegal metric prefix.
    It is always fatal.

    Example:
        try:
            config = parse_args(argv)
        except ConfigurationError as e:
            logger.error(f"Invalid configuration: {e}")
            raise SystemExit(2)
    """

    pass


__all__ = [
    "ConfigurationError",
    "ExporterError",
    "RequestCancelledError",
    "UpstreamError",
]
