"""
HTTP surface for the scanner.
"""
