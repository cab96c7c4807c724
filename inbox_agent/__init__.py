"""
Autonomous inbox agent.

A per-user email triage pipeline that:
- Polls a connected Gmail mailbox on a fixed interval
- Classifies each unseen message with a language model
- Replies, stars or ignores the message
- Records an append-only processing log and activity feed
"""
