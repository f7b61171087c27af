"""Infrastructure adapters: SQLite stores, model clients, retrieval, payment gateway."""
