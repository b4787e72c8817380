"""Test doubles and async helpers shared by the unit tests."""
