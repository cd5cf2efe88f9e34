"""
Coaching Package
================
Prompt construction, the coaching orchestrator, and the response log.

Modules:
  prompt_builder - pure data -> prompt / synopsis / message helpers
  demo_data      - canned tracker payloads for demo mode
  response_log   - bounded JSON log of coaching exchanges
  orchestrator   - CoachingService (prompt -> queue -> outcome)
"""
