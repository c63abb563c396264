"""
Live broadcast domain logic.

Includes:
- session: Per-broadcast coordinator, state machine and creator stream control.
"""
