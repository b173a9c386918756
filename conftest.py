"""
Root pytest configuration.

Its presence makes the repository root pytest's rootdir conftest, and in the
default prepend import mode pytest inserts this directory into sys.path, so
the top-level packages import without an installed distribution.
"""
