"""FastAPI adapter over the strategy kernel.

Owns process concerns only: settings, the Postgres pool, caller identity and
the mapping of kernel errors onto HTTP statuses. It must NOT be imported by
`advertis_kernel`.
"""
