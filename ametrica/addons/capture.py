import asyncio
import logging
import os
from typing import Optional

from mitmproxy import command
from mitmproxy import ctx
from mitmproxy import exceptions
from mitmproxy import http
from mitmproxy.log import ALERT

from ametrica import beacon
from ametrica import decoder
from ametrica import dimensions
from ametrica import event
from ametrica import eventstore
from ametrica import storage

logger = logging.getLogger(__name__)

STORE_BASENAME = "ametrica.json"


class Capture:
    """
    Capture analytics beacons passing through the proxy.

    Matching requests are decoded and appended to the event store. Appending is done
    on a worker thread, the request itself is never held up or modified.
    """

    def __init__(self) -> None:
        self.enabled: bool = False
        self.host: str = beacon.TARGET_HOST
        self.storage: storage.Storage | None = None
        self.store: eventstore.EventStore | None = None
        self.pending: set[asyncio.Task] = set()

    def load(self, loader):
        loader.add_option(
            "ametrica_capture",
            bool,
            False,
            """
            Capture analytics beacons. The current state is persisted in the store file.
            """,
        )
        loader.add_option(
            "ametrica_host",
            str,
            beacon.TARGET_HOST,
            "Host that analytics beacons are sent to.",
        )
        loader.add_option(
            "ametrica_store",
            Optional[str],
            None,
            f"""
            File in which captured beacons are kept.
            Defaults to {STORE_BASENAME} in the configuration directory.
            """,
        )

    @property
    def store_path(self) -> str:
        if ctx.options.ametrica_store:
            return os.path.expanduser(ctx.options.ametrica_store)
        return os.path.join(os.path.expanduser(ctx.options.confdir), STORE_BASENAME)

    def configure(self, updated):
        if "ametrica_host" in updated:
            host = ctx.options.ametrica_host.strip().lower()
            if not host:
                raise exceptions.OptionsError("ametrica_host must not be empty.")
            self.host = host
        if "ametrica_store" in updated or "confdir" in updated:
            self.open(self.store_path)
        if "ametrica_capture" in updated:
            self.set_enabled(ctx.options.ametrica_capture)

    def open(self, path: str) -> None:
        if self.storage is not None:
            self.storage.sig_changed.disconnect(self._storage_changed)
        self.storage = storage.Storage(path)
        self.storage.sig_changed.connect(self._storage_changed)
        self.store = eventstore.EventStore(self.storage)
        self.enabled = bool(self.storage.get(storage.LOGGING_ENABLED, False))

    def _storage_changed(self, key: str, value) -> None:
        if key == storage.LOGGING_ENABLED:
            self.enabled = bool(value)

    def set_enabled(self, enabled: bool) -> None:
        assert self.storage is not None
        if self.storage.get(storage.LOGGING_ENABLED, False) == enabled:
            self.enabled = enabled
            return
        try:
            self.storage.put(storage.LOGGING_ENABLED, enabled)
        except OSError as e:
            raise exceptions.OptionsError(
                f"Failed writing to {self.storage.path}: {e}"
            ) from e

    def request(self, flow: http.HTTPFlow) -> None:
        if not self.enabled:
            return

        url = flow.request.pretty_url
        if not beacon.matches(url, self.host):
            return

        info = beacon.RequestInfo.from_flow(flow)
        params = beacon.parse_params(url)
        decoded = decoder.decode(params.cx)
        ev = event.Event.make(params, info, decoded, dimensions.extract(decoded))
        flow.metadata["ametrica"] = True
        logger.debug(f"Captured beacon {ev.title}: {url}")
        self.dispatch(ev)

    def dispatch(self, ev: event.Event) -> None:
        if self.store is None:
            return
        t = asyncio.create_task(
            asyncio.to_thread(self._append, self.store, ev),
            name="ametrica append",
        )
        self.pending.add(t)
        t.add_done_callback(self.pending.discard)

    @staticmethod
    def _append(store: eventstore.EventStore, ev: event.Event) -> None:
        try:
            store.append(ev)
        except OSError as e:
            logger.warning(f"Failed writing to {store.storage.path}: {e}")

    async def done(self):
        if self.pending:
            await asyncio.gather(*self.pending)
        # Capturing always starts out disabled in the next session.
        if self.storage is not None and self.enabled:
            try:
                self.storage.put(storage.LOGGING_ENABLED, False)
            except OSError as e:
                logger.warning(f"Failed writing to {self.storage.path}: {e}")

    @command.command("ametrica.capture.start")
    def start(self) -> None:
        """
        Start capturing beacons.
        """
        ctx.options.update(ametrica_capture=True)
        logging.log(ALERT, "Beacon capture started.")

    @command.command("ametrica.capture.stop")
    def stop(self) -> None:
        """
        Stop capturing beacons.
        """
        ctx.options.update(ametrica_capture=False)
        logging.log(ALERT, "Beacon capture stopped.")

    @command.command("ametrica.capture.enabled")
    def is_enabled(self) -> bool:
        """
        Are beacons currently being captured?
        """
        return self.enabled
