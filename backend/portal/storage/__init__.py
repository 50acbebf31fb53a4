"""
storage package — Object-store adapter and storage naming conventions.
"""
