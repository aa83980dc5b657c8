"""Domain layer (pure logic).

- Keep game rules and calculations here (login bonus steps, gacha sampling, card levels, passive income).
- Avoid I/O: no DB sessions, no HTTP/FastAPI, no Redis.
- Prefer deterministic functions (time/random passed in as arguments if needed).
"""
