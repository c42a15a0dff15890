"""
Upload core: settings resolution, orchestration, event log and the host-facing service.
"""
