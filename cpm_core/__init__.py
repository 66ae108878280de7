"""
Collaborative Positioning Mesh (CPM) Core Package.

Nearby devices share periodic GNSS reports over an ad-hoc hub/spoke link and
compute proximity warnings locally.

Package structure:
- proto: Report schema and wire codec
- geometry: Great-circle distance, relative velocity
- registry: Per-device latest state, liveness sweep, proximity analysis
- io: Framing, connection bookkeeping, hub/spoke transport, timers
- metrics: Diagnostics, counters, histograms
"""

__version__ = "0.1.0"
__author__ = "CPM Team"
