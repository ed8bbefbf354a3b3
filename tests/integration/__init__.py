"""Integration test package.

These tests exercise the end-to-end behaviour of the M statistics
pipeline on small synthetic meta-analyses, including the command-line
interface and result persistence.
"""
