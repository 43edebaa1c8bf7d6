"""Case study gallery: scan, cache and serve CASESTUDY.md documents."""

__version__ = "0.1.0"
