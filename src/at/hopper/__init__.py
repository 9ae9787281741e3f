"""
Hopper - AT-URI Resolution Service

This package resolves AT Protocol record identifiers (AT-URIs) into the web pages that
display them. Servers that render AT Protocol records publish a small discovery document
listing URL templates; Hopper fetches those documents, picks the template that fits the
identifier, and redirects the user to the expanded URL.

Key Components:
- model: Identifier and discovery document models
- resolve: Discovery protocols, template matching, caches and the resolver
- metrics: Metrics abstraction over Telegraf/StatsD shared by the resolver and the app
- app: Web application layer, configuration and background tasks

Resolution Overview:
1. The AT-URI is parsed and validated (handle, did:plc or did:web identity, NSID collection)
2. Each candidate server is consulted in order through the discovery document cache
3. The first link template matching the identifier is expanded and returned
4. The outcome, success or failure, is cached for the next request with the same inputs
"""
