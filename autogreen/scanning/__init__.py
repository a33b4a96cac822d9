"""
Scroll-driven product detection, extraction and deep-scan pipeline.
"""
