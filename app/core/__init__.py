"""Application-wide primitives shared by services and blueprints."""
