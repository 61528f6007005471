"""
Permission rules and the policy engine.

- `glob`: path-glob matching used by rule filters
- `rules`: `PermissionRule` parsing and structural matching
- `policy`: `PolicyEngine`, deny > allow > ask > default(ASK)
- `modes`: permission-mode overrides producing the effective decision
- `sensitive`: sensitive file classification
"""
