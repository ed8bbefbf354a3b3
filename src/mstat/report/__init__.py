"""Rendering of results: figures and tables.

Everything here consumes a finished result and leaves it unchanged.
"""
