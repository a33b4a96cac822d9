"""
HTML parsing for listing cards and product detail pages.
"""
