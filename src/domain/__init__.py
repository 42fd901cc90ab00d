"""
Domain layer for the forwarding decision.

This layer contains:
- Data models (notification, verdicts, outbound messages, outcomes)
- Decision logic (verdict classifier, blacklist filter, pipeline)
- Error types (malformed input vs upstream failures)
"""
