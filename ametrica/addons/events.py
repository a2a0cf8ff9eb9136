import logging
from collections.abc import Sequence

import pyperclip

import mitmproxy.types
from mitmproxy import command
from mitmproxy import ctx
from mitmproxy import exceptions
from mitmproxy.log import ALERT

from ametrica import eventstore
from ametrica import query


class Events:
    """
    Commands for inspecting, clearing and exporting captured beacons.
    """

    def _store(self) -> eventstore.EventStore:
        capture = ctx.master.addons.get("capture")
        if capture is None or capture.store is None:
            raise exceptions.CommandError("Beacon capture is not configured.")
        return capture.store

    def _fresh(self):
        try:
            return self._store().read_fresh()
        except OSError as e:
            raise exceptions.CommandError(e) from e

    @command.command("ametrica.count")
    def count(self) -> int:
        """
        Return the number of captured beacons.
        """
        return len(self._fresh())

    @command.command("ametrica.list")
    def summaries(self) -> Sequence[str]:
        """
        Summarize the captured beacons, newest first.
        """
        return [query.summary(ev) for ev in self._fresh()]

    @command.command("ametrica.clear")
    def clear(self) -> None:
        """
        Remove all captured beacons.
        """
        try:
            self._store().clear()
        except OSError as e:
            raise exceptions.CommandError(e) from e
        logging.log(ALERT, "Cleared captured beacons.")

    @command.command("ametrica.export.file")
    def file(self, path: mitmproxy.types.Path) -> None:
        """
        Export the captured beacons to a JSON file. If path is a directory,
        a timestamped file is created in it.
        """
        events = self._fresh()
        path = query.export_path(path)
        try:
            with open(path, "w", encoding="utf-8") as f:
                f.write(query.to_json(events))
        except OSError as e:
            raise exceptions.CommandError(e) from e
        logging.log(ALERT, f"Exported {len(events)} beacons to {path}.")

    @command.command("ametrica.export.clip")
    def clip(self) -> None:
        """
        Copy the captured beacons to the system clipboard as JSON.
        """
        try:
            pyperclip.copy(query.to_json(self._fresh()))
        except pyperclip.PyperclipException as e:
            logging.error(str(e))
