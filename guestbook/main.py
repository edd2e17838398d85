import logging

import uvicorn

from guestbook.core.app_factory import create_app
from guestbook.core.config import settings

logger = logging.getLogger(__name__)

app = create_app()


def parse_listen_addr(value: str) -> tuple[str, int]:
    """Split ``host:port`` (IPv6 hosts in brackets) into its parts.

    Examples:
        >>> parse_listen_addr("0.0.0.0:3000")
        ('0.0.0.0', 3000)
        >>> parse_listen_addr("[::1]:8080")
        ('::1', 8080)
    """
    host, sep, port = value.rpartition(":")
    if not sep or not host or not port.isdigit():
        raise ValueError(f"bad listen address: {value!r}")
    return host.strip("[]"), int(port)


def run() -> None:
    """Serve the application with uvicorn on APP_LISTEN_ADDR."""
    host, port = parse_listen_addr(settings.app.listen_addr)
    logger.info("server.starting", extra={"host": host, "port": port})
    uvicorn.run(app, host=host, port=port, log_config=None, proxy_headers=False)


if __name__ == "__main__":
    run()
