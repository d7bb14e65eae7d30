#serializer module validates the JSON bodies of the account endpoints
from collections.abc import Mapping

from rest_framework import serializers

from .models import User

# Alternative key names accepted for each field
FIELD_ALIASES = {
    "student_id": "external_id",
    "name": "display_name",
    "password": "secret",
}


class AliasedFieldsMixin:
    """
    Accept ``external_id``/``display_name``/``secret`` in place of the
    canonical field names.
    """

    def to_internal_value(self, data):
        if not isinstance(data, Mapping):
            return super().to_internal_value(data)
        data = data.dict() if hasattr(data, "dict") else dict(data)
        for field, alias in FIELD_ALIASES.items():
            if field in self.fields and field not in data and alias in data:
                data[field] = data[alias]
        return super().to_internal_value(data)


class RegistrationSerializer(AliasedFieldsMixin, serializers.Serializer):
    """
    serializer for registering a student.
    """

    student_id = serializers.CharField(max_length=64)
    name = serializers.CharField(max_length=150)
    password = serializers.CharField(write_only=True, style={"input_type": "password"}, trim_whitespace=False)


class LoginSerializer(AliasedFieldsMixin, serializers.Serializer):
    student_id = serializers.CharField(max_length=64)
    password = serializers.CharField(write_only=True, style={"input_type": "password"}, trim_whitespace=False)


class IdentitySerializer(serializers.ModelSerializer):
    """
    Voter roll entry as shown to admins.
    """

    class Meta:
        model = User
        fields = ("id", "student_id", "name", "is_admin", "has_voted")
        read_only_fields = fields
