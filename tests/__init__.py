"""
Tests for the Grafana Prowl relay.
"""
