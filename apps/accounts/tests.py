from types import SimpleNamespace

from django.contrib.auth.models import AnonymousUser
from django.test import TestCase

from .models import Role, User
from .policies import Action, POLICY, is_allowed


class UserManagerTests(TestCase):
    def test_create_user_defaults_to_customer(self):
        user = User.objects.create_user(email="Buyer@Example.com", password="secret")

        self.assertEqual(user.role, Role.CUSTOMER)
        self.assertEqual(user.email, "Buyer@example.com")
        self.assertTrue(user.check_password("secret"))
        self.assertFalse(user.is_staff)

    def test_create_superuser_is_admin(self):
        admin = User.objects.create_superuser(email="root@example.com", password="secret")

        self.assertEqual(admin.role, Role.ADMIN)
        self.assertTrue(admin.is_superuser)

    def test_email_required(self):
        with self.assertRaises(ValueError):
            User.objects.create_user(email="")


class PolicyTests(TestCase):
    def setUp(self):
        self.customer = User.objects.create_user(email="c@example.com", password="pw")
        self.other = User.objects.create_user(email="o@example.com", password="pw")
        self.seller = User.objects.create_user(email="s@example.com", password="pw", role=Role.SELLER)
        self.admin = User.objects.create_user(email="a@example.com", password="pw", role=Role.ADMIN)
        self.own_order = SimpleNamespace(user_id=self.customer.id)
        self.foreign_order = SimpleNamespace(user_id=self.other.id)

    def test_every_action_has_a_policy_row(self):
        actions = {v for k, v in vars(Action).items() if k.isupper()}
        self.assertEqual(actions, set(POLICY))

    def test_anonymous_and_inactive_users_denied(self):
        self.assertFalse(is_allowed(AnonymousUser(), Action.ORDER_CREATE))
        self.assertFalse(is_allowed(None, Action.ORDER_CREATE))

        self.customer.is_active = False
        self.assertFalse(is_allowed(self.customer, Action.ORDER_CREATE))

    def test_customer_acts_only_on_own_orders(self):
        self.assertTrue(is_allowed(self.customer, Action.ORDER_VIEW, self.own_order))
        self.assertTrue(is_allowed(self.customer, Action.ORDER_CANCEL, self.own_order))
        self.assertTrue(is_allowed(self.customer, Action.ORDER_PAY, self.own_order))
        self.assertFalse(is_allowed(self.customer, Action.ORDER_VIEW, self.foreign_order))
        self.assertFalse(is_allowed(self.customer, Action.ORDER_CANCEL, self.foreign_order))

    def test_customer_denied_staff_actions(self):
        for action in (
            Action.ORDER_VIEW_ALL, Action.ORDER_UPDATE_STATUS, Action.ORDER_REFUND,
            Action.ANALYTICS_VIEW, Action.INVENTORY_ADJUST, Action.ORDER_EXPORT,
        ):
            self.assertFalse(is_allowed(self.customer, action), action)

    def test_seller_can_view_and_transition_but_not_refund(self):
        self.assertTrue(is_allowed(self.seller, Action.ORDER_VIEW, self.foreign_order))
        self.assertTrue(is_allowed(self.seller, Action.ORDER_UPDATE_STATUS, self.foreign_order))
        self.assertTrue(is_allowed(self.seller, Action.ANALYTICS_VIEW))
        self.assertFalse(is_allowed(self.seller, Action.ORDER_REFUND, self.foreign_order))
        self.assertFalse(is_allowed(self.seller, Action.INVENTORY_ADJUST))

    def test_seller_cancels_only_own_orders(self):
        seller_order = SimpleNamespace(user_id=self.seller.id)

        self.assertTrue(is_allowed(self.seller, Action.ORDER_CANCEL, seller_order))
        self.assertFalse(is_allowed(self.seller, Action.ORDER_CANCEL, self.foreign_order))
        self.assertFalse(is_allowed(self.seller, Action.ORDER_CANCEL_ANY_STATUS, seller_order))
        self.assertTrue(is_allowed(self.admin, Action.ORDER_CANCEL, self.foreign_order))

    def test_admin_and_superuser(self):
        root = User.objects.create_superuser(email="root@example.com", password="pw", role=Role.CUSTOMER)

        self.assertTrue(is_allowed(self.admin, Action.ORDER_REFUND, self.foreign_order))
        self.assertTrue(is_allowed(root, Action.ORDER_REFUND, self.foreign_order))

    def test_unknown_action_denied(self):
        self.assertFalse(is_allowed(self.admin, "order.teleport"))
