"""
Entry points.
"""
