from account_hub.models.profile import Profile

__all__ = ["Profile"]
