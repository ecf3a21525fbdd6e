#app/api/auth/schemas.py
from marshmallow import Schema, fields, validate, pre_load

USERNAME_PATTERN = r'^[A-Za-z0-9_.]+$'

class RegisterSchema(Schema):
    """Validates the sign-up request."""
    name = fields.Str(required=True, validate=validate.Length(min=1, max=50))
    username = fields.Str(
        required=True,
        validate=[
            validate.Length(min=3, max=30),
            validate.Regexp(USERNAME_PATTERN, error="Only letters, digits, '_' and '.' are allowed."),
        ]
    )
    email = fields.Email(required=True)
    password = fields.Str(required=True, load_only=True, validate=validate.Length(min=6, max=128))

    @pre_load
    def strip_strings(self, data, **kwargs):
        if isinstance(data, dict):
            return {k: v.strip() if isinstance(v, str) and k != 'password' else v for k, v in data.items()}
        return data

class LoginSchema(Schema):
    """Validates the email/password login request."""
    email = fields.Email(required=True)
    password = fields.Str(required=True, load_only=True)

class LogoutRequestSchema(Schema):
    """Validates the logout request."""
    access_token = fields.Str(required=True)
    refresh_token = fields.Str(required=True)
