# Application Subscription Package
from .dispatch import fire_and_forget
from .state_machine import SubscriptionStateMachine

__all__ = ["SubscriptionStateMachine", "fire_and_forget"]
