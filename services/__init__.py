"""
Service layer

Pure calculation and delivery helpers; no status transitions happen here:
- game_vote_service: game vote ranking and tiebreak
- nomination_service: guilty / innocent tally
- notification_service: in-app notification delivery
"""
