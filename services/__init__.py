"""
Shared integrations for the estate site: geocoding and places, email
notifications, Turnstile bot checks and value parsing.
"""
