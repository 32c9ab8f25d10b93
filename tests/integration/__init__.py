"""
Integration tests for the ParkWash engine

These tests drive the assembled FacilityService end to end:
1. Parking, wash and reservation flows on the in-memory store
2. Concurrent requests against shared spaces, plates and slots
3. The SQLAlchemy store on an in-memory SQLite database
"""
