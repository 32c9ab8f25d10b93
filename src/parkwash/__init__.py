"""ParkWash - parking and car wash facility engine"""

__version__ = "1.0.0"
