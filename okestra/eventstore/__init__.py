"""In-memory event streams with ordered delivery to subscribers."""