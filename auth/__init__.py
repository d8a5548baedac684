"""auth/ -- Authentication and session lifecycle package.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/ or core/. Configuration values (secret, token
lifetimes, caps) are passed in by the caller that builds SessionService.
api/ imports from auth/, not the other way around.
"""
