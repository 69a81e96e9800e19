"""
UVS - Matrix User Verification Service

This module implements a small verification gateway for the Matrix federation. Downstream
services hand it an OpenID token that a user obtained from their homeserver, and the service
answers whether the token belongs to a real, currently valid Matrix user and, optionally,
whether that user is a member of a given room.

Key Components:
- app: Web application layer with request handlers and server configuration
- verify: Verification decision logic (caller gate, homeserver selection, remote lookups)
- resolve: Matrix server name resolution (well-known delegation, SRV records)

Architecture Overview:
1. Caller Authentication:
   - An optional shared secret protects the verification endpoints
   - Rejected callers never cause an outbound request

2. Homeserver Selection:
   - Single-homeserver mode always queries the configured homeserver
   - Multi-homeserver mode resolves the requested server name per request

3. Verification:
   - The OpenID userinfo endpoint vouches for the token's owner
   - The Synapse admin API lists room members for room membership checks

The service is stateless: nothing outlives a request except the configuration loaded at
startup and the shared HTTP client session.
"""
