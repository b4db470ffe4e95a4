"""
Security policies applied after a token validates: account lockout, client
certificate pinning and Keycloak role synchronisation.
"""
