"""
portal — Backend for the role-based patient records access portal.
"""
