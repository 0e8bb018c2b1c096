"""
Token authentication for the portal API.

The frontend sends ``Authorization: Token <key>`` after login.  The
profile and laboratory are loaded together with the token so that the
guards evaluated right after authentication do not issue extra queries.
Kept apart from the views so DRF can import it from settings without
pulling in the rest of the app.
"""
from __future__ import annotations

from rest_framework import authentication, exceptions


class TokenAuthentication(authentication.TokenAuthentication):
    keyword = 'Token'

    def authenticate_credentials(self, key):
        model = self.get_model()
        try:
            token = model.objects.select_related('user', 'user__profile__laboratory').get(key=key)
        except model.DoesNotExist:
            raise exceptions.AuthenticationFailed('Invalid token.')

        if not token.user.is_active:
            raise exceptions.AuthenticationFailed('User inactive or deleted.')

        return (token.user, token)
