"""
Tube Pod - Access Core

This package implements the identity and access control core of a federated video-sharing
pod. Each pod is an independently operated server that owns its user accounts and videos,
issues OAuth2-style bearer tokens to registered client applications, and selectively opens
federation links with peer pods.

Key Components:
- app: aiohttp web application, configuration, middleware and request handlers
- oauth: client registry, password hashing and the token service
- library: user directory, video ownership ledger and shared listing helpers
- federation: the gate that opens and closes relationships with peer pods
- model: SQLAlchemy models for clients, tokens, users, videos and pod relationships

Request Flow:
1. A client application exchanges its credentials plus a user's username and password
   for an access/refresh token pair at the token endpoint.
2. Every protected request presents the access token as a bearer token.
3. The authorization guard validates the token and, for ownership-sensitive operations,
   compares the resource owner with the token's user before any state changes.

Byte storage for uploaded media and the pod-to-pod handshake transport are consumed
through narrow interfaces (library.media.MediaStore and federation.handshake.PeerHandshake).
"""
