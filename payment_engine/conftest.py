import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from payment_engine.celery import app as celery_app

PASSWORD = 'S3cure-pass!'


@pytest.fixture(autouse=True)
def payment_settings(settings):
    settings.PAYMENTS_ENABLED = True
    settings.ESCROW_WORK_COMPLETION_BY = 'freelancer'
    settings.WITHDRAWAL_AUTO_APPROVE_BELOW = None
    settings.EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'
    celery_app.conf.CELERY_TASK_ALWAYS_EAGER = True
    return settings


def make_user(email, user_type, **extra):
    return get_user_model().objects.create_user(
        email=email,
        password=PASSWORD,
        user_type=user_type,
        first_name=email.split('@')[0].title(),
        last_name='Test',
        **extra,
    )


@pytest.fixture
def client_user(db):
    return make_user('client@example.com', 'client')


@pytest.fixture
def freelancer(db):
    return make_user('freelancer@example.com', 'freelancer')


@pytest.fixture
def other_client(db):
    return make_user('other.client@example.com', 'client')


@pytest.fixture
def other_freelancer(db):
    return make_user('other.freelancer@example.com', 'freelancer')


@pytest.fixture
def operator(db):
    return make_user('operator@example.com', 'operator')


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def auth_client():
    def _client(user):
        api = APIClient()
        api.force_authenticate(user=user)
        return api
    return _client


@pytest.fixture
def engine():
    from payments.services import PaymentEngine
    return PaymentEngine()


@pytest.fixture
def contract(engine, client_user, freelancer):
    return engine.accept_proposal(
        project_id=1,
        client=client_user,
        freelancer=freelancer,
        amount='500.00',
        proposal_id=10,
    )


@pytest.fixture
def escrow(contract):
    return contract.escrow
