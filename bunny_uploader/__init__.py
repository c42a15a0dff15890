"""
Bunny Uploader: mirrors audio files to Bunny.net storage and returns CDN URLs.
"""

__version__ = "1.0.0"
