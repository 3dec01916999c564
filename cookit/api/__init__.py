"""
HTTP API for Cookit (FastAPI).
"""
