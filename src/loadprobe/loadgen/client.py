from __future__ import annotations

import asyncio
import errno
import logging
import socket
import time
from typing import Mapping

import httpx

from loadprobe.metrics import OutcomeKind, RequestOutcome

logger = logging.getLogger(__name__)

RESOLUTION_ERROR_CODE = "ENOTFOUND"


async def send_request(
    client: httpx.AsyncClient,
    endpoint: str,
    timeout_sec: float,
    started_mono: float,
    headers: Mapping[str, str] | None = None,
) -> RequestOutcome:
    issued_at = time.time()
    start_mono = time.perf_counter()
    offset_sec = start_mono - started_mono
    try:
        status_code = await asyncio.wait_for(
            _fetch(client, endpoint, timeout_sec, headers),
            timeout=timeout_sec,
        )
    except (asyncio.TimeoutError, httpx.TimeoutException):
        kind = OutcomeKind.TIMEOUT
        status_code = None
        error_code = None
    except httpx.HTTPError as exc:
        kind = OutcomeKind.NETWORK_ERROR
        status_code = None
        error_code = network_error_code(exc)
        logger.debug("GET %s failed: %s (%s)", endpoint, error_code, exc)
    except Exception as exc:  # noqa: BLE001
        kind = OutcomeKind.NETWORK_ERROR
        status_code = None
        error_code = type(exc).__name__
        logger.debug("GET %s failed unexpectedly: %s (%s)", endpoint, error_code, exc)
    else:
        kind = OutcomeKind.SUCCESS if 200 <= status_code < 300 else OutcomeKind.HTTP_ERROR
        error_code = None
    latency_ms = (time.perf_counter() - start_mono) * 1000.0
    return RequestOutcome(
        endpoint=endpoint,
        issued_at=issued_at,
        offset_sec=offset_sec,
        latency_ms=latency_ms,
        kind=kind,
        status_code=status_code,
        error_code=error_code,
    )


async def _fetch(
    client: httpx.AsyncClient,
    endpoint: str,
    timeout_sec: float,
    headers: Mapping[str, str] | None,
) -> int:
    # The body is fully read so the latency covers the whole exchange; it is then dropped.
    resp = await client.get(endpoint, headers=headers, timeout=timeout_sec)
    return resp.status_code


def network_error_code(exc: BaseException) -> str:
    # errno symbol of the underlying socket error when there is one.
    code = _find_os_error_code(exc, set())
    return code or type(exc).__name__


def _find_os_error_code(exc: BaseException | None, seen: set[int]) -> str | None:
    while exc is not None and id(exc) not in seen:
        seen.add(id(exc))
        if isinstance(exc, socket.gaierror):
            return RESOLUTION_ERROR_CODE
        if isinstance(exc, OSError) and exc.errno in errno.errorcode:
            return errno.errorcode[exc.errno]
        for inner in getattr(exc, "exceptions", ()):
            code = _find_os_error_code(inner, seen)
            if code:
                return code
        exc = exc.__cause__ or exc.__context__
    return None
