"""Outputs subpackage: exports and figures.

Modules are imported on demand so the core allocation code never pulls
in matplotlib or openpyxl.
"""
