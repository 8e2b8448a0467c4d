"""Tile addressing, fetching and mosaic compositing for remote map tile services."""
