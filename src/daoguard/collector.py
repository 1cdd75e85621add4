"""UDP collector ("root") that feeds received DAOs to the dispatcher.

The collector is only a transport adapter: it stamps each datagram with a
monotonic arrival time and the sender's address, then hands it to
``Dispatcher.deliver``. Metrics are exported by an explicit ``close()``.
"""

from __future__ import annotations

import argparse
import logging
import signal
import socket
import sys
import threading
import time
from pathlib import Path

from . import config as _cfg
from .events import Delivery
from .metrics import Summary
from .replay import FreshnessValidator
from .router import Dispatcher

logger = logging.getLogger(__name__)

RECV_BUFSIZE = 2048
POLL_INTERVAL = 0.1


class Collector:
    """Receive DAOs on a UDP socket until stopped or the run duration expires."""

    def __init__(
        self,
        host: str = _cfg.DEFAULT_HOST,
        port: int = _cfg.DEFAULT_PORT,
        *,
        dispatcher: Dispatcher | None = None,
        metrics_path: str | Path | None = _cfg.METRICS_CSV,
        duration: float | None = _cfg.DURATION,
    ) -> None:
        self.dispatcher = dispatcher if dispatcher is not None else Dispatcher(key=_cfg.KEY)
        self.metrics_path = metrics_path
        self.duration = duration
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        self.sock = socket.socket(family, socket.SOCK_DGRAM)
        try:
            self.sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            self.sock.bind((host, port))
        except OSError:
            self.sock.close()
            raise
        self.sock.settimeout(POLL_INTERVAL)
        self._closed = False
        self._close_lock = threading.Lock()
        self.summary: Summary | None = None

    @property
    def address(self) -> tuple:
        return self.sock.getsockname()

    def serve(self, stop: threading.Event | None = None) -> int:
        """Deliver datagrams until *stop* is set or ``duration`` elapses.

        Returns the number of datagrams received.
        """
        stop = stop or threading.Event()
        deadline = time.monotonic() + self.duration if self.duration is not None else None
        received = 0
        logger.info("DAO collector listening on %s", self.address)
        while not stop.is_set():
            if deadline is not None and time.monotonic() >= deadline:
                logger.info("Run duration of %.1fs reached", self.duration)
                break
            try:
                data, addr = self.sock.recvfrom(RECV_BUFSIZE)
            except socket.timeout:
                continue
            except OSError:
                # socket closed underneath us by a signal handler
                if stop.is_set() or self._closed:
                    break
                raise
            received += 1
            # sender identity is the source address, not the ephemeral port
            self.dispatcher.deliver(Delivery(addr[0], data, time.monotonic()))
        return received

    def close(self) -> Summary:
        """Close the socket, export metrics and print the summary; safe to repeat."""
        with self._close_lock:
            if self._closed:
                return self.summary
            self._closed = True
            self.sock.close()
            recorder = self.dispatcher.recorder
            if self.metrics_path is not None:
                try:
                    self.summary = recorder.export(self.metrics_path)
                except OSError:
                    logger.exception("Could not append metrics to %s", self.metrics_path)
                    self.summary = recorder.report()
            else:
                self.summary = recorder.report()
            print()
            print(self.summary.render())
            return self.summary

    def __enter__(self) -> "Collector":
        return self

    def __exit__(self, *exc) -> bool:
        self.close()
        return False


def main(argv: list[str] | None = None) -> None:  # pragma: no cover – side-effect entrypoint
    """Run a collector from the command line and print metrics on exit."""
    parser = argparse.ArgumentParser(description="DAO replay-mitigating collector")
    parser.add_argument("--host", default=_cfg.DEFAULT_HOST, help="Address to bind.")
    parser.add_argument("--port", type=int, default=_cfg.DEFAULT_PORT, help="UDP port to bind.")
    parser.add_argument(
        "--duration",
        type=float,
        default=_cfg.DURATION,
        help="Seconds to run before exporting metrics (default: until signalled).",
    )
    parser.add_argument(
        "--burst-threshold",
        type=float,
        default=_cfg.BURST_THRESHOLD,
        help="Minimum spacing in seconds between same-seq arrivals.",
    )
    parser.add_argument("--metrics", default=str(_cfg.METRICS_CSV), help="CSV file to append metrics to.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity.")
    parser.add_argument(
        "-s",
        "--silent",
        "-q",
        "--quiet",
        dest="silent",
        action="store_true",
        help="Suppress all output but errors.",
    )
    args = parser.parse_args(argv)

    if args.silent:
        level = logging.ERROR
    elif args.debug or _cfg.DEBUG:
        level = logging.DEBUG
    elif args.verbose >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    dispatcher = Dispatcher(FreshnessValidator(args.burst_threshold), key=_cfg.KEY)
    if _cfg.KEY is not None:
        logger.info("HMAC payload authentication ENABLED")
    collector = Collector(
        args.host,
        args.port,
        dispatcher=dispatcher,
        metrics_path=args.metrics,
        duration=args.duration,
    )
    stop = threading.Event()

    def _shutdown(signum, frame):
        sys.stderr.write("\n")
        logger.info("Received signal %s, shutting down", signum)
        stop.set()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    with collector:
        collector.serve(stop)


if __name__ == "__main__":  # pragma: no cover
    main()
