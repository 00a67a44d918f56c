"""TypedDict shapes shared across grove modules."""
