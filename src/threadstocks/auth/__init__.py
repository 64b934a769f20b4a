"""Authentication and authorization.

Learn: One authentication path — email/password → signed JWT session token.
The token travels in an HttpOnly "token" cookie (browsers) or in an
Authorization: Bearer header (scripts, mobile). Either way it resolves to
a "current identity" whose user_id scopes every thread query.
"""
