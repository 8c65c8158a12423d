"""
Core game logic

- GameStateMachine: the only path by which game_state changes
- Managers: room lifecycle, phase control, submissions
- RoomStore: record-store operations (lookups, compare-and-swap, atomic increments)
- Locks: row-level concurrency helpers
"""
