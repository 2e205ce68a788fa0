"""auth/ -- Credential hashing, session tokens, and the session lifecycle for imgshare-auth.

Layer rule: auth/ imports from core/ and users/ only.
It does NOT import from api/. api/ imports from auth/, not the other way around.
"""
