"""Newsdesk worker configuration (environment-driven settings and feed list)."""
