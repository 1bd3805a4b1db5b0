"""
Authorization microservice for EstateHub.

This module provides authentication and account services:
- Registration, e-mail confirmation and login
- Access/refresh token pairs bound to server-side sessions
- Password reset and soft-deleted account recovery
- User profiles, administration and service-to-service lookup
"""
