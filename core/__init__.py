"""
Core business logic

This package holds every state-changing rule:
- State machine: the only place jam status transitions are decided
- Managers: JamManager (jam lifecycle) and UserManager (accounts, history)
- Locks: row leases and optimistic retry for jam read-modify-write
- Exceptions: the error taxonomy surfaced to callers
"""
