"""Small shared helpers: API error responses, password hashing."""
