"""
photomap - Personal travel photo album on a map

A web application for sharing a photo album plotted on a map, with features including:
- Photo upload by allow-listed uploaders, stored in Google Cloud Storage
- Placeholder generation for progressive image display
- Metadata kept in a single JSON document next to the images
- Grid-based marker clustering that follows the map zoom level
- Cloud IAP authentication
"""

__version__ = "0.1.0"
__author__ = "photomap"
__description__ = "Personal travel photo album on a map"
