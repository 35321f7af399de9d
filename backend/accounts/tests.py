from django.contrib.auth import get_user_model
from django.test import TestCase

User = get_user_model()


class UserModelTests(TestCase):
    def test_new_users_are_consumers(self):
        user = User.objects.create_user(username='newcomer', password='pass1234')

        self.assertEqual(user.role, User.ROLE_CONSUMER)
        self.assertEqual(str(user), 'newcomer (Consumer)')

    def test_admin_lists_users_by_role(self):
        admin_user = User.objects.create_superuser(username='admin', password='pass1234', email='admin@example.com')
        User.objects.create_user(username='plumber', password='pass1234', role=User.ROLE_PROVIDER)
        self.client.force_login(admin_user)

        response = self.client.get('/admin/accounts/user/', {'role__exact': 'provider', 'q': 'plumb'})

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'plumber')
