from rest_framework.permissions import BasePermission


class IsClient(BasePermission):
    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and request.user.user_type == 'client')


class IsFreelancer(BasePermission):
    message = "Only freelancers have wallets."

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and request.user.user_type == 'freelancer')


class IsOperator(BasePermission):
    """
    Allows access only to operators (staff, 'operator' accounts or members of the
    operators group).
    """
    message = "Only operators can perform this action."

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.is_operator)
