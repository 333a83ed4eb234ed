from tortoise.models import Model
from tortoise import fields

class TrustedKey(Model):
    # Base64 X.509 SubjectPublicKeyInfo; the key string is its own identity
    public_key = fields.CharField(max_length=4096, pk=True)

    class Meta:
        table = "trusted_key"
