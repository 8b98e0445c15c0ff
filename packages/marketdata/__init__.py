"""Market data core: feed parsing, provider adapters, aggregation and analytics."""
