"""
OAuth Layer

Client authentication and bearer token management for the pod.

Key Components:
- clients.py: Client registry (register, validate, list, remove)
- tokens.py: Token service (password grant, refresh grant, revoke, validate, purge)
- passwords.py: Password hashing for users and digesting of client secrets

Errors raised here map to the token endpoint's ``invalid_client`` and ``invalid_grant``
codes; see social.tube.pod.errors.
"""
