"""
STREAKr backend package.

Provides the FastAPI application behind the picks, settlement, leagues and
venue consoles, with storage, database and queue abstractions so the same
services run against Firestore, Postgres or in-memory backends.
"""
