"""
Database Models

This package defines the SQLAlchemy models backing the pod's access core.

Key Models:
- base.py: Declarative base, shared column annotations and UTC helpers
- clients.py: OAuth client registrations (hashed secrets, allowed grant types)
- tokens.py: Access/refresh token pairs bound to a user and a client
- users.py: Local user accounts with hashed credentials and roles
- videos.py: Video metadata owned by exactly one user
- pods.py: Federation relationships with peer pods

Relationships:
- Token.user_id -> User.id, Token.client_id -> Client.client_id
- Video.author_id -> User.id

Deleting a user removes its tokens and videos in the same transaction; see
social.tube.pod.library.users.delete_user.
"""

from social.tube.pod.model.base import Base
from social.tube.pod.model.clients import Client
from social.tube.pod.model.pods import PodRelationship
from social.tube.pod.model.tokens import Token
from social.tube.pod.model.users import User
from social.tube.pod.model.videos import Video

__all__ = ["Base", "Client", "PodRelationship", "Token", "User", "Video"]
