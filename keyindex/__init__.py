"""keyindex: GitHub public key reverse index.

Walks every GitHub account with the REST user listing, fetches each
account's SSH public keys with batched GraphQL node lookups, and records
key -> login associations in Redis.
"""
