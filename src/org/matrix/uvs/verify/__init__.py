"""
Verification Logic

This package turns a verification request into a verification result.

Key Components:
- gate.py: Caller authentication against the configured shared secret
- homeserver.py: Selection of the homeserver to query for a request
- client.py: OpenID userinfo and Synapse room member lookups
- engine.py: The Verifier that chains the steps above
- models.py: Request schemas, lookup results and verification results
- exceptions.py: Failures that short-circuit verification

Every request follows the same path:
gate -> homeserver selection -> identity lookup -> [room member lookup] -> result.
Remote failures are never surfaced as errors; they produce a negative result.
"""
