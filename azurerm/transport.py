"""
azurerm/transport.py

Pipeline policy that mirrors every HTTP exchange to the `azurerm.http`
logger at DEBUG level.

The full wire dump is attempted first; if building it fails (streamed body,
undecodable payload, ...) a one-line summary is logged instead. Logging never
raises into the call it instruments.
"""

import logging

from azure.core.pipeline.policies import HTTPPolicy

logger = logging.getLogger("azurerm.http")

_REDACTED_HEADERS = {"authorization"}


def _format_headers(headers) -> str:
    lines = []
    for name, value in headers.items():
        if name.lower() in _REDACTED_HEADERS:
            value = "REDACTED"
        lines.append(f"{name}: {value}")
    return "\n".join(lines)


def _body_text(body) -> str:
    if body is None:
        return ""
    if isinstance(body, (bytes, bytearray)):
        return body.decode("utf-8")
    if isinstance(body, str):
        return body
    # File-like or generator bodies cannot be dumped without consuming them
    raise TypeError(f"cannot dump request body of type {type(body).__name__}")


def dump_request(http_request) -> str:
    body = _body_text(getattr(http_request, "body", None))
    return f"{http_request.method} {http_request.url} HTTP/1.1\n{_format_headers(http_request.headers)}\n\n{body}"


def dump_response(http_response) -> str:
    return (
        f"HTTP/1.1 {http_response.status_code} {http_response.reason or ''}\n"
        f"{_format_headers(http_response.headers)}\n\n{http_response.text()}"
    )


class RequestLoggingPolicy(HTTPPolicy):
    """Shared outbound-logging decorator for every service client."""

    def send(self, request):
        http_request = request.http_request
        self._log_request(http_request)
        try:
            response = self.next.send(request)
        except Exception:
            logger.debug("Request to %s completed with no response", http_request.url)
            raise
        self._log_response(http_request, response.http_response)
        return response

    @staticmethod
    def _log_request(http_request) -> None:
        if not logger.isEnabledFor(logging.DEBUG):
            return
        try:
            logger.debug("AzureRM Request: \n%s\n", dump_request(http_request))
        except Exception:
            logger.debug("AzureRM Request: %s to %s", http_request.method, http_request.url)

    @staticmethod
    def _log_response(http_request, http_response) -> None:
        if not logger.isEnabledFor(logging.DEBUG):
            return
        try:
            logger.debug("AzureRM Response for %s: \n%s\n", http_request.url, dump_response(http_response))
        except Exception:
            logger.debug("AzureRM Response: %s for %s", http_response.status_code, http_request.url)
