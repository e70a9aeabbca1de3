"""Download, inspect, locate and describe prebuilt software binaries for release."""

__version__ = "0.1.0"