"""
api package — FastAPI dependencies and routers.
"""
