from rest_framework import exceptions
from rest_framework.authentication import BaseAuthentication, get_authorization_header

from .models import Staff


class StaffTokenAuthentication(BaseAuthentication):
    """
    ``Authorization: Token <key>`` where the key was issued by the login
    endpoint. ``request.user`` becomes the ``Staff`` row.
    """
    keyword = 'Token'

    def authenticate(self, request):
        auth = get_authorization_header(request).split()
        if not auth or auth[0].lower() != self.keyword.lower().encode():
            return None
        if len(auth) != 2:
            raise exceptions.AuthenticationFailed('Invalid token header.')

        try:
            key = auth[1].decode()
        except UnicodeError:
            raise exceptions.AuthenticationFailed('Invalid token header.')

        try:
            staff = Staff.objects.get(auth_token=key)
        except Staff.DoesNotExist:
            raise exceptions.AuthenticationFailed('Invalid or expired token.')
        if not staff.is_active:
            raise exceptions.AuthenticationFailed('Account is deactivated.')
        return staff, key

    def authenticate_header(self, request):
        return self.keyword
