"""
oobwatch command-line interface.
"""
