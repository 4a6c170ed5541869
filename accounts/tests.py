import pytest
from django.urls import reverse
from rest_framework import status

from accounts.models import User, DoctorProfile


# ============================================
# USER MODEL TESTS
# ============================================

@pytest.mark.django_db
class TestUserModel:
    """Test custom User model"""

    def test_create_user_with_email(self):
        user = User.objects.create_user(email='Someone@Example.com', password='testpass123')

        assert user.email == 'Someone@example.com'
        assert user.check_password('testpass123')
        assert user.user_type == 'client'

    def test_email_required(self):
        with pytest.raises(ValueError):
            User.objects.create_user(email='', password='testpass123')

    def test_create_superuser(self):
        user = User.objects.create_superuser(email='root@test.com', password='testpass123')

        assert user.is_staff and user.is_superuser
        assert user.user_type == 'admin'
        assert user.can_manage_schedule is True

    def test_full_name(self, client_user):
        assert client_user.full_name == 'Test Owner'

    @pytest.mark.parametrize('user_type, is_staff, can_manage', [
        ('client', False, False),
        ('vet', True, False),
        ('registrar', True, True),
        ('admin', True, True),
    ])
    def test_roles(self, user_type, is_staff, can_manage):
        user = User.objects.create_user(email=f'{user_type}@roles.test', password='x', user_type=user_type)

        assert user.is_clinic_staff is is_staff
        assert user.can_manage_schedule is can_manage


@pytest.mark.django_db
class TestDoctorProfile:

    def test_display_name(self, doctor_profile):
        assert str(doctor_profile) == 'Dr. Test Vet'
        assert doctor_profile.display_name == 'Dr. Test Vet'

    def test_specialization_optional(self, second_doctor):
        assert second_doctor.specialization is None
        assert DoctorProfile.objects.filter(is_active=True).count() == 1


# ============================================
# AUTH API TESTS
# ============================================

@pytest.mark.django_db
class TestTokenAPI:

    def test_obtain_token_returns_role(self, api_client, registrar_user):
        response = api_client.post(reverse('accounts:token-obtain'), {
            'email': 'registrar@test.com',
            'password': 'testpass123',
        }, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert 'access' in response.data
        assert 'refresh' in response.data
        assert response.data['user']['user_type'] == 'registrar'

    def test_wrong_password(self, api_client, registrar_user):
        response = api_client.post(reverse('accounts:token-obtain'), {
            'email': 'registrar@test.com',
            'password': 'wrong',
        }, format='json')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data['success'] is False

    def test_bearer_token_authenticates(self, api_client, registrar_user):
        tokens = api_client.post(reverse('accounts:token-obtain'), {
            'email': 'registrar@test.com',
            'password': 'testpass123',
        }, format='json').data
        api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access']}")

        response = api_client.get(reverse('accounts:current-user'))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['email'] == 'registrar@test.com'

    def test_refresh(self, api_client, registrar_user):
        tokens = api_client.post(reverse('accounts:token-obtain'), {
            'email': 'registrar@test.com',
            'password': 'testpass123',
        }, format='json').data

        response = api_client.post(reverse('accounts:token-refresh'), {'refresh': tokens['refresh']}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert 'access' in response.data


@pytest.mark.django_db
class TestCurrentUserAPI:

    def test_update_own_profile(self, authenticated_client):
        response = authenticated_client.patch(reverse('accounts:current-user'), {'phone': '+79990001122'}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['phone'] == '+79990001122'

    def test_user_type_is_read_only(self, authenticated_client, client_user):
        authenticated_client.patch(reverse('accounts:current-user'), {'user_type': 'admin'}, format='json')

        client_user.refresh_from_db()
        assert client_user.user_type == 'client'

    def test_anonymous(self, api_client):
        response = api_client.get(reverse('accounts:current-user'))

        assert response.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN)
