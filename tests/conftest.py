import pytest

from lockerroom.auth import issue_token
from lockerroom.models import School, Student, User
from lockerroom.roles import SCHOOL_ADMIN, SCOUT_ADMIN, STUDENT, SYSTEM_ADMIN, VIEWER, XEN_SCOUT

PASSWORD = "Passw0rd!"


@pytest.fixture(autouse=True)
def _test_settings(settings):
    settings.BACKGROUND_UPLOADS = False
    settings.ENABLE_RATE_LIMIT = False
    settings.RESEND_API_KEY = ''
    settings.FRONTEND_URL = 'http://frontend.test'
    settings.CLOUDINARY = {'cloud_name': 'demo', 'api_key': 'key', 'api_secret': 'secret'}
    settings.JWT_SECRET = 'test-secret'
    yield


@pytest.fixture
def fake_cloudinary(monkeypatch):
    """Replace Cloudinary uploads with an in-memory recorder."""
    import cloudinary.uploader

    calls = {'upload': [], 'destroy': []}

    def upload(file, **options):
        calls['upload'].append(options)
        folder = options.get('folder', 'lockerroom')
        public_id = f"{folder}/asset{len(calls['upload'])}"
        return {
            'secure_url': f"https://res.cloudinary.com/demo/{public_id}",
            'public_id': public_id,
            'resource_type': options.get('resource_type', 'image'),
        }

    def destroy(public_id, **options):
        calls['destroy'].append(public_id)
        return {'result': 'ok'}

    monkeypatch.setattr(cloudinary.uploader, 'upload', upload)
    monkeypatch.setattr(cloudinary.uploader, 'upload_large', upload)
    monkeypatch.setattr(cloudinary.uploader, 'destroy', destroy)
    return calls


# ==================== ACCOUNTS ====================

def make_user(email, role, **extra):
    extra.setdefault('name', email.split('@')[0].title())
    extra.setdefault('email_verified', True)
    return User.objects.create_user(email, PASSWORD, role=role, **extra)


@pytest.fixture
def school(db):
    academy = School(name="Riverside Academy", payment_amount=100, max_students=5)
    academy.extend_subscription('monthly')
    academy.save()
    return academy


@pytest.fixture
def other_school(db):
    academy = School(name="Hilltop Academy", payment_amount=80, max_students=5)
    academy.extend_subscription('annual')
    academy.save()
    return academy


@pytest.fixture
def sysadmin(db):
    return make_user('sysadmin@example.com', SYSTEM_ADMIN, name='System Admin')


@pytest.fixture
def school_admin(school):
    return make_user('coach@riverside.test', SCHOOL_ADMIN, school=school, name='Riverside Coach')


@pytest.fixture
def student(school):
    user = make_user('player@riverside.test', STUDENT, school=school, name='Jordan Player')
    return Student.objects.create(user=user, school=school, name='Jordan Player', sport='Football', position='Striker')


@pytest.fixture
def other_student(other_school):
    user = make_user('player@hilltop.test', STUDENT, school=other_school, name='Sam Runner')
    return Student.objects.create(user=user, school=other_school, name='Sam Runner', sport='Athletics')


@pytest.fixture
def viewer(db):
    return make_user('fan@example.com', VIEWER, name='Fan')


@pytest.fixture
def scout(db):
    return make_user('scout@example.com', XEN_SCOUT, name='Scout', xen_id='XSA-26001')


@pytest.fixture
def scout_admin(db):
    return make_user('scoutlead@example.com', SCOUT_ADMIN, name='Scout Lead', xen_id='XSA-26002')


# ==================== API CLIENT ====================

@pytest.fixture
def api(client):
    """
    Call the JSON API as ``user``.

    Usage:
        response = api('post', '/api/posts/1/like', user=viewer)
    """

    def call(method, path, user=None, data=None, **extra):
        if user is not None:
            extra['HTTP_AUTHORIZATION'] = f"Bearer {issue_token(user)}"
        method = method.lower()
        handler = getattr(client, method)
        if method == 'get':
            return handler(path, data or {}, **extra)
        extra.setdefault('content_type', 'application/json')
        return handler(path, data if data is not None else {}, **extra)

    return call
