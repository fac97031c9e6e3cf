# HTTP layer: callback route, session middleware, error boundary.
# Created: 2026-10-19
