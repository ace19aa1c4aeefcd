"""
Synthesis pipeline: chunking, clone-prompt cache tiers and backends.
"""
