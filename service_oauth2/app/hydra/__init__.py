"""
ORY Hydra integration: admin API client for introspection and client metadata.
"""
