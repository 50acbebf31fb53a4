"""
v1 routers — auth, users, assignments and blobs.
"""
