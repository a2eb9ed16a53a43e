"""client/ -- Client-side session handling for Readivine frontends and tools.

AuthStore tracks whether the current user is logged in and drives the login
and logout navigations; RedirectCircuitBreaker stops those navigations from
looping when cookies or CORS are misconfigured.

Layer rule: client/ talks to the server over HTTP only. It does NOT import
from api/, auth/ or core/.
"""
