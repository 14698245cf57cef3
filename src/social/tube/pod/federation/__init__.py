"""
Federation

Relationships between this pod and its peers.

Key Components:
- gate.py: Make/quit friends state machine over PodRelationship rows
- handshake.py: PeerHandshake interface and its HTTP implementation

Only the authorization precondition and the relationship state live here; the exchange
of video metadata between friends is handled elsewhere.
"""
