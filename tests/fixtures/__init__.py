"""Test fixtures for the message feed.

This package provides reusable test fixtures:
- ledger: An in-memory ledger that mimics the feed program
- api: Backend state and a TestClient for the HTTP front door
"""
