from __future__ import annotations

import logging
import time
from pathlib import Path

from pymongo import MongoClient
from pymongo.errors import ConnectionFailure, PyMongoError

LOGGER = logging.getLogger("mongobench.connection")

CONNECT_TIMEOUT_S_DEFAULT = 60.0


class BenchmarkConnectionError(Exception):
    """Raised when the benchmark cannot reach the MongoDB deployment."""


def client_options(pool_size: int, cert_path: Path | None = None) -> dict[str, object]:
    options: dict[str, object] = {"maxPoolSize": pool_size}
    if cert_path is not None:
        if not cert_path.is_file():
            raise BenchmarkConnectionError(f"certificate file {cert_path} does not exist")
        options.update(
            tls=True,
            tlsCAFile=str(cert_path),
            tlsAllowInvalidCertificates=True,
        )
    return options


def create_client(
    uri: str,
    pool_size: int,
    cert_path: Path | None = None,
    timeout_s: float = CONNECT_TIMEOUT_S_DEFAULT,
) -> MongoClient:
    options = client_options(pool_size, cert_path)
    backoff = 1.0
    max_backoff = 10.0
    deadline = time.time() + timeout_s

    while True:
        client: MongoClient | None = None
        try:
            client = MongoClient(uri, **options)
            client.admin.command("ping")
        except ConnectionFailure as exc:
            if client is not None:
                client.close()
            if time.time() >= deadline:
                raise BenchmarkConnectionError(
                    f"failed to connect to Mongo at {uri} within {timeout_s:.0f} seconds"
                ) from exc

            LOGGER.warning("Mongo not reachable yet (%s), retrying in %.1fs", exc, backoff)
            time.sleep(backoff)
            backoff = min(backoff * 1.5, max_backoff)
            continue
        except PyMongoError as exc:
            # Bad URI, bad options or rejected credentials: retrying cannot help.
            if client is not None:
                client.close()
            raise BenchmarkConnectionError(f"cannot connect to Mongo at {uri}: {exc}") from exc

        LOGGER.info("Mongo connected successfully")
        return client


__all__ = [
    "BenchmarkConnectionError",
    "CONNECT_TIMEOUT_S_DEFAULT",
    "client_options",
    "create_client",
]
