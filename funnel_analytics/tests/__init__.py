"""Test suite for the Funnel Analytics backend."""
