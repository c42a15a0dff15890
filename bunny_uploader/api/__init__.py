"""
HTTP sidecar API (FastAPI).
"""
