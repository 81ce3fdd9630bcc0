"""
Geolocation Package

Geolocation sources for hop annotation and the live WebSocket channel
used by the LeoMoeAPI source.
"""
