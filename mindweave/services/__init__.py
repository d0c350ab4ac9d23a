"""mindweave services.

Service architecture follows the ADR decisions:
- ADR-001: Risk scoring is deterministic keyword scoring, never a model
- ADR-003: All services use hash_pii() for user identifiers
- ADR-004: Emergency-contact events go to Kinesis, fire-and-forget
- ADR-007: Every agent has a deterministic fallback; crisis fails toward caution
- ADR-008: Every request finishes within its strategy timeout budget
"""
