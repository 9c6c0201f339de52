from datetime import timedelta

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.utils import timezone

from lockerroom.auth import issue_token
from lockerroom.models import Banner, Post

pytestmark = pytest.mark.django_db


def announce(creator, title='Kit day', scope='global', school=None):
    return Post.objects.create(
        type='announcement', title=title, caption='Collect your kit', broadcast=True,
        scope=scope, school=school, created_by_admin=creator, media_type='text',
    )


# ==================== ANNOUNCEMENTS ====================

def test_system_admin_posts_global_announcement(api, sysadmin):
    response = api('post', '/api/system-admin/announcements', user=sysadmin,
                   data={'title': 'Season opener', 'content': 'Fixtures are live'})
    assert response.status_code == 201
    item = response.json()['announcement']
    assert item['isAnnouncement'] is True
    assert item['announcementScope'] == 'global'
    assert item['student']['id'] == 'announcement'
    assert item['student']['name'] == 'XEN SPORTS ARMOURY'


def test_announcement_requires_title_and_content(api, sysadmin):
    response = api('post', '/api/system-admin/announcements', user=sysadmin, data={'title': 'Only title'})
    assert response.status_code == 400


def test_announcement_with_uploaded_media(client, sysadmin, fake_cloudinary):
    response = client.post(
        '/api/system-admin/announcements',
        {'title': 'Trials', 'content': 'See poster',
         'file': SimpleUploadedFile('poster.jpg', b'jpg', content_type='image/jpeg')},
        HTTP_AUTHORIZATION=f"Bearer {issue_token(sysadmin)}",
    )
    assert response.status_code == 201
    assert fake_cloudinary['upload'][0]['folder'] == 'lockerroom/announcements'
    assert response.json()['announcement']['mediaType'] == 'image'


def test_school_admin_announces_to_own_school_only(api, school_admin, school, other_school):
    ok = api('post', f'/api/schools/{school.id}/announcements', user=school_admin,
             data={'title': 'Training moved', 'content': 'Now at 6pm'})
    assert ok.status_code == 201
    assert ok.json()['announcement']['student']['name'] == 'Riverside Academy'

    denied = api('post', f'/api/schools/{other_school.id}/announcements', user=school_admin,
                 data={'title': 'x', 'content': 'y'})
    assert denied.status_code == 403


def test_announcement_visibility_by_role(api, sysadmin, school, other_school, school_admin, student,
                                         other_student, viewer, scout):
    global_post = announce(sysadmin, 'Global')
    riverside = announce(school_admin, 'Riverside only', scope='school', school=school)
    hilltop = announce(sysadmin, 'Hilltop only', scope='school', school=other_school)

    def visible(user):
        return {a['id'] for a in api('get', '/api/announcements', user=user).json()['announcements']}

    assert visible(student.user) == {global_post.id, riverside.id}
    assert visible(other_student.user) == {global_post.id, hilltop.id}
    assert visible(scout) == {global_post.id, riverside.id, hilltop.id}
    assert api('get', '/api/announcements', user=viewer).status_code == 403


def test_feed_mixes_visible_announcements(api, sysadmin, student, viewer):
    announce(sysadmin, 'Global')
    student_feed = api('get', '/api/posts', user=student.user).json()['posts']
    assert [p['title'] for p in student_feed] == ['Global']

    viewer_feed = api('get', '/api/posts', user=viewer).json()['posts']
    assert viewer_feed == []

    without = api('get', '/api/posts', user=student.user, data={'includeAnnouncements': 'false'}).json()
    assert without['posts'] == []


def test_hidden_announcement_detail_is_404(api, sysadmin, other_school, student):
    hidden = announce(sysadmin, 'Hilltop only', scope='school', school=other_school)
    assert api('get', f'/api/posts/{hidden.id}', user=student.user).status_code == 404


def test_edit_and_delete_announcement(api, school_admin, school, sysadmin):
    post = announce(school_admin, 'Old', scope='school', school=school)
    response = api('put', f'/api/announcements/{post.id}', user=school_admin, data={'title': 'New'})
    assert response.json()['announcement']['title'] == 'New'

    foreign = announce(sysadmin, 'Global')
    assert api('delete', f'/api/announcements/{foreign.id}', user=school_admin).status_code == 403
    assert api('delete', f'/api/announcements/{post.id}', user=school_admin).status_code == 200
    assert api('delete', f'/api/announcements/{foreign.id}', user=sysadmin).status_code == 200


# ==================== BANNERS ====================

def banner(**fields):
    fields.setdefault('title', 'Heads up')
    fields.setdefault('message', 'Maintenance tonight')
    fields.setdefault('target_roles', ['viewer'])
    return Banner.objects.create(**fields)


def test_create_banner_validation(api, sysadmin):
    bad_role = api('post', '/api/system-admin/banners', user=sysadmin,
                   data={'title': 'T', 'message': 'M', 'targetRoles': ['wizard']})
    assert bad_role.status_code == 400

    no_roles = api('post', '/api/system-admin/banners', user=sysadmin,
                   data={'title': 'T', 'message': 'M', 'targetRoles': []})
    assert no_roles.status_code == 400

    now = timezone.now()
    backwards = api('post', '/api/system-admin/banners', user=sysadmin, data={
        'title': 'T', 'message': 'M', 'targetRoles': ['viewer'],
        'startDate': now.isoformat(), 'endDate': (now - timedelta(days=1)).isoformat(),
    })
    assert backwards.status_code == 400

    ok = api('post', '/api/system-admin/banners', user=sysadmin, data={
        'title': 'T', 'message': 'M', 'targetRoles': ['xen_watch'], 'category': 'warning', 'priority': 3,
    })
    assert ok.status_code == 201
    assert ok.json()['banner']['priority'] == 3


def test_update_and_delete_banner(api, sysadmin):
    item = banner()
    response = api('put', f'/api/system-admin/banners/{item.id}', user=sysadmin, data={'isActive': False})
    assert response.json()['banner']['isActive'] is False
    assert api('delete', f'/api/system-admin/banners/{item.id}', user=sysadmin).status_code == 200
    assert api('get', f'/api/system-admin/banners/{item.id}', user=sysadmin).status_code == 404


def test_active_banners_filtering(api, viewer, student):
    now = timezone.now()
    low = banner(title='Low', priority=1)
    high = banner(title='High', priority=5, target_roles=['xen_watch'])
    banner(title='Inactive', is_active=False)
    banner(title='Future', start_date=now + timedelta(days=1))
    banner(title='Past', end_date=now - timedelta(days=1))
    banner(title='Admins', target_roles=['system_admin'])

    viewer_titles = [b['title'] for b in api('get', '/api/banners/active', user=viewer).json()['banners']]
    assert viewer_titles == [high.title, low.title]

    student_titles = [b['title'] for b in api('get', '/api/banners/active', user=student.user).json()['banners']]
    assert student_titles == ['High']


def test_active_banners_school_targeting(api, school_admin, school, other_school):
    banner(title='Ours', target_roles=['school_admin'], target_school_ids=[str(school.id)])
    banner(title='Theirs', target_roles=['school_admin'], target_school_ids=[other_school.id])
    banner(title='Everyone', target_roles=['school_admin'])

    titles = {b['title'] for b in api('get', '/api/banners/active', user=school_admin).json()['banners']}
    assert titles == {'Ours', 'Everyone'}


def test_banner_admin_is_system_admin_only(api, school_admin):
    assert api('get', '/api/system-admin/banners', user=school_admin).status_code == 403


def test_banner_rejects_impossible_dates(api, sysadmin):
    response = api('post', '/api/system-admin/banners', user=sysadmin, data={
        'title': 'T', 'message': 'M', 'targetRoles': ['viewer'], 'startDate': '2025-13-45T00:00:00Z',
    })
    assert response.status_code == 400
    assert not Banner.objects.exists()


def test_banner_is_active_accepts_form_strings(api, sysadmin):
    item = banner()
    response = api('put', f'/api/system-admin/banners/{item.id}', user=sysadmin, data={'isActive': 'false'})
    assert response.status_code == 200
    assert response.json()['banner']['isActive'] is False

    response = api('put', f'/api/system-admin/banners/{item.id}', user=sysadmin, data={'isActive': 'maybe'})
    assert response.status_code == 400
    item.refresh_from_db()
    assert item.is_active is False


def test_schoolless_members_still_see_global_announcements(api, sysadmin, school, school_admin):
    from lockerroom.roles import SCHOOL_ADMIN
    from .conftest import make_user

    global_post = announce(sysadmin, 'Global')
    announce(school_admin, 'Riverside only', scope='school', school=school)
    unassigned = make_user('lonely@example.com', SCHOOL_ADMIN)

    response = api('get', '/api/announcements', user=unassigned)
    assert [a['id'] for a in response.json()['announcements']] == [global_post.id]
    assert api('get', f'/api/posts/{global_post.id}', user=unassigned).status_code == 200
