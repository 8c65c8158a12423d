"""
Service layer

Pure (or read-only) helpers with no state transitions:
- scoring_service: trivia and scavenger point awards
- naming_service: room codes, host keys, display names
- timer_service: wall-clock anchored timers
- presence_service: host liveness, player connectivity cutoff
- question_service: question layout and answer reveal
- leaderboard_service: ranking, snapshots, CSV export
"""
