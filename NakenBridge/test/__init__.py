"""
Tests for the NakenBridge relay, interpreter and client.
"""
