"""
HealthVibe - identity and session service for the HealthVibe membership site.

Registration, password login with optional TOTP, signed session tokens with
server-side revocation, password reset, and role-gated routes.
"""

__version__ = "0.1.0"
