"""
Domain layer for email forwarding business logic.

This layer contains:
- Address normalization and recipient resolution
- Header rewriting of raw messages
- The forwarding pipeline (explicit state machine)
- Data models and result types
"""
