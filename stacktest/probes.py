"""
Ready-made probes for the poller.

A probe is a read-only check returning True once the awaited condition holds.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

import httpx

from .poll import CONSISTENCY, Poller, Probe, PollResult, RetryPolicy


def http_probe(
    url: str,
    check: Callable[[str], bool],
    client: httpx.Client | None = None,
    headers: Mapping[str, str] | None = None,
    request_timeout: float = 10.0,
    lg: Any = None,
) -> Probe:
    """
    Probe that GETs ``url`` and passes the body to ``check``.

    The probe is true when the response status is 200 and ``check(body)``
    returns True. Transport errors (DNS not propagated yet, connection
    refused) count as a failed attempt rather than an error.
    """

    def probe() -> bool:
        try:
            if client is not None:
                response = client.get(url, headers=headers, timeout=request_timeout)
            else:
                response = httpx.get(url, headers=headers, timeout=request_timeout)
        except httpx.TransportError as e:
            if lg is not None:
                lg.trace("request failed", extra={"url": url, "error": str(e)})
            return False
        if response.status_code != 200:
            if lg is not None:
                lg.trace(
                    "unexpected status",
                    extra={"url": url, "status": response.status_code},
                )
            return False
        return bool(check(response.text))

    return probe


def assert_http_result_with_retry(
    url: str,
    check: Callable[[str], bool],
    policy: RetryPolicy = CONSISTENCY,
    client: httpx.Client | None = None,
    headers: Mapping[str, str] | None = None,
    poller: Poller | None = None,
) -> PollResult:
    """
    Wait until ``url`` serves a body accepted by ``check``.

    Raises:
        PollTimeoutError: If the body never satisfied ``check`` within the policy
    """
    poller = poller or Poller()
    probe = http_probe(url, check, client=client, headers=headers, lg=poller.lg)
    return poller.until(probe, policy, what=f"HTTP result from {url}")


def output_probe(
    fetch: Callable[[], Mapping[str, Any]], key: str, expected: Any
) -> Probe:
    """Probe that is true once output ``key`` from ``fetch()`` equals ``expected``."""

    def probe() -> bool:
        return fetch().get(key) == expected

    return probe
