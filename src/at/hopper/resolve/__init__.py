"""
AT-URI Resolution

This package resolves AT-URIs into destination URLs using discovery documents
published by candidate servers.

Key Components:
- protocol.py: Discovery protocol descriptors (host-meta, webfinger)
- discovery.py: Discovery document fetching and decoding
- matcher.py: Link template selection and expansion
- cache.py: Tagged cache entries and the memory/Redis cache backends
- resolver.py: Discovery cache and the resolution orchestrator
- seeds.py: Built-in discovery documents for well known applications
- errors.py: Error taxonomy
- __main__.py: CLI interface for resolution

The resolution flow follows these steps:
1. Check the resolution cache for the (AT-URI, server list) pair
2. For each server in order, get its discovery document from the discovery cache,
   fetching it on a miss
3. Match the document's links against the AT-URI; the first match wins
4. Cache the destination, or the failure when every server is exhausted
"""
