"""pitchboard.integrations: Primary store gateways.

Every call to the primary store goes through a PrimaryStore implementation,
never via bare `requests` or ad-hoc SQL in services or blueprints.

Each call:
  - returns a StoreResult and never raises
  - distinguishes "unreachable" (transport) from "rejected" (store error)
  - is logged with the collection and round-trip latency

Current stores:
  store_gateway.RestPrimaryStore   PostgREST / Supabase REST API
  sql_store.SqlPrimaryStore        Flask-SQLAlchemy tables
"""
