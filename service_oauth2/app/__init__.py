"""
Multi-provider OAuth2/OIDC authentication resolver.
"""
