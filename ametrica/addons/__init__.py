from ametrica.addons import capture
from ametrica.addons import events


def default_addons():
    return [
        capture.Capture(),
        events.Events(),
    ]
