"""Heart-rate sync infrastructure.

Modules:
    orchestrator - One fetch-then-persist cycle with a single auth-expiry retry
    scheduler    - Fixed-interval loop that isolates cycle failures
"""
