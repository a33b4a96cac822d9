"""
autogreen/scheduler package marker.
"""
