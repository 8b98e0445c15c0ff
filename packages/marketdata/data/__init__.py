"""News feeds, aggregation, sector merge and the valuation screener."""
