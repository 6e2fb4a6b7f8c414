"""Request middleware: logging, timing, JWT authentication, route decorators."""
