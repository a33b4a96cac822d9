"""
AutoGreen product scanner.
"""
