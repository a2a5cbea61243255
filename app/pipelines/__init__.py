"""Resource pipelines — fetch an upstream page, parse it into records, cache the result.

Each pipeline builds its cache key with ``app.services.key_codec`` so the
refresher can decode it back into the same upstream request.
"""
