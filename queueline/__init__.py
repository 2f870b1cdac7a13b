"""
Queueline Booking System

A FastAPI-based backend for queue and appointment booking at clinics, banks
and offices, with authentication, role-based access control, working-hours
aware slot booking and same-day queue tracking.
"""

__version__ = "1.0.0"
