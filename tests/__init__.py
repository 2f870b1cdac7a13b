"""
Test suite for the Queueline Booking System.

Contains unit tests for the queue rules and API tests for the services.
"""
import os

# Set environment for testing
os.environ["TESTING"] = "1"
