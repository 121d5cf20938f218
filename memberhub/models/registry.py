"""Imports every model so Base.metadata knows all tables."""
from memberhub.models.user import User
from memberhub.models.coupon import Coupon
from memberhub.models.application_form import ApplicationForm
from memberhub.models.plan import Plan
from memberhub.models.application import Application
from memberhub.models.subscription import Subscription
from memberhub.models.payment import Payment
from memberhub.models.digital_card import DigitalCard

__all__ = ["User", "Coupon", "ApplicationForm", "Plan", "Application", "Subscription", "Payment", "DigitalCard"]
