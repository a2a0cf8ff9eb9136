"""
Capture analytics beacons while browsing through mitmproxy.

Run as follows: mitmproxy -s capture.py --set ametrica_capture=true

Inside mitmproxy, beacons can be inspected with the ametrica.* commands,
e.g. ":ametrica.list" or ":ametrica.export.file ~/beacons.json".
"""

from ametrica.addons import default_addons

addons = default_addons()
