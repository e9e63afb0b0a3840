"""
Realtime subsystem.

Components:
- change_bus.py: per-owner "something changed" publish/subscribe
- client_sync.py: a session's cached task list, reconciled by full re-read
"""
