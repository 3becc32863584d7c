"""
Trends -- decayed-engagement trending statuses with review gating.

Statuses that people interact with are recorded as usage candidates. A
periodic refresh scores every candidate by how far its engagement exceeds
the expected baseline, decays that score by age, and replaces the trending
snapshot in one transaction. Statuses that climb above the review boundary
before being approved get their authors flagged for moderation.

Components:
  options.py       -- Immutable engine configuration + YAML loading
  models.py        -- Account / Status / TrendRecord value types
  eligibility.py   -- Which statuses may be tracked at all
  usage.py         -- Recently-used tracking (in-memory or Redis)
  scorer.py        -- Exponential half-life score calculation
  store.py         -- SQLite trending snapshot (atomic upsert + prune)
  query.py         -- Immutable, chainable trending query
  ranker.py        -- Ranked views, rank/score point queries
  review.py        -- Review-threshold escalation
  repositories.py  -- SQLite status/account/exclusion adapters
  engine.py        -- TrendingStatuses facade wiring it all together
"""
