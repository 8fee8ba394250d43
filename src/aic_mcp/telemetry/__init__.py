"""Telemetry: operational logging for the server and the auth engine.

Structure:
    system/         System operational logs (stderr + optional system.jsonl)
                    - Authentication events, listener lifecycle, tool failures
"""

__all__: list[str] = []
