"""
Pod Library

The resources a pod owns and the rules for reading and changing them.

Key Components:
- users.py: User directory with sorted, paginated listing and cascading deletion
- videos.py: Video ownership ledger binding each video to its author
- listing.py: Page type, sort parsing and tiebreaking shared by both listings
- media.py: MediaStore interface and the local-directory implementation
"""
