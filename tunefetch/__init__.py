"""
tunefetch: turn a Spotify playlist into a folder of MP3 files.
"""

__version__ = "0.1.0"
