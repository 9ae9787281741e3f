"""
Data Models

Immutable pydantic models shared by the resolution engine and the web layer.

Key Models:
- aturi.py: The parsed AT-URI and its validators (hostname, NSID, identity)
- discovery.py: Discovery documents and their link entries
- health.py: Health monitoring gauge
"""
