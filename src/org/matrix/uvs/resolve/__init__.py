"""
Server Name Resolution

This package resolves Matrix server names (the domain part of a user ID such as
``@alice:example.org``) to the base URL of the homeserver that answers federation
requests for them.

Key Components:
- server.py: Server name parsing, discovery, IP blacklist checks and the
  BlacklistingResolver used by the client session
- __main__.py: CLI interface for resolution

The resolution flow follows the Matrix server-server API:
1. IP literals are used directly (default port 8448)
2. Hostnames with an explicit port are used directly
3. Otherwise https://{hostname}/.well-known/matrix/server may delegate to another host
4. Without an explicit port, _matrix-fed._tcp and then _matrix._tcp SRV records are consulted
5. Failing all of the above, port 8448 on the hostname is used
"""
