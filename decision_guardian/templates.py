DECISIONS_TEMPLATE = """\
# Architecture Decisions

<!-- DECISION-001 -->
## Decision: Database access goes through the repository layer

**Status**: Active
**Date**: {today}
**Severity**: Critical

**Files**:
- `src/db/**/*.ts`
- `!src/db/**/*.test.ts`

### Context

Queries are only issued from the repository layer so that connection pooling
and tenancy checks stay in one place.

---

<!-- DECISION-002 -->
## Decision: Pool size changes need a capacity review

**Status**: Active
**Date**: {today}
**Severity**: Warning

**Rules**:
```json
{{
  "match_mode": "all",
  "conditions": [
    {{
      "type": "file",
      "pattern": "config/**/*.json",
      "content_rules": [{{"mode": "json_path", "paths": ["$.database.pool_size"]}}]
    }}
  ]
}}
```

### Context

The pool size is tuned against the database's connection limit.
"""
