"""
core package — Settings, logging, errors, database and security helpers.
"""
