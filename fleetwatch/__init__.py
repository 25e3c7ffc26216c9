"""
FleetWatch geofence console backend
"""
