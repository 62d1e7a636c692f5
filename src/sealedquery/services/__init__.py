"""Services for SealedQuery: transport, session, and query orchestration."""
