"""
Upstream ingestion for the Cricket Live relay.
Provider client, status normalization, cache store, live-set reconciler and fan-out publisher.
"""
