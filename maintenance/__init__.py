"""Operator CLI: serve, migrate, reacquire, status, diagnose."""
