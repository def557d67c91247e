"""
Test suite for photomap application.

This module contains the test cases for the application:
- Unit tests for services and models
- API tests through the FastAPI test client
- Maintenance task tests
"""
