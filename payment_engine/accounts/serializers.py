from rest_framework_simplejwt.serializers import TokenObtainPairSerializer


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    Login serializer. Embeds the marketplace role in the token so clients can
    render role-specific screens without an extra round trip.
    """
    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['email'] = user.email
        token['user_type'] = user.user_type
        token['is_operator'] = user.is_operator
        return token
