"""
OAuth2 login service.
"""
