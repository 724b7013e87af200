"""
Engine modules.

- similarity: multi-signal track similarity and its result cache
- taste: taste clustering of listening history
- prefetch: next-track prediction and staging
"""
