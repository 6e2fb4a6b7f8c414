"""Business logic.  Blueprints call into these modules; they never commit on their own."""
