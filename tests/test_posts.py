import cloudinary.exceptions
import cloudinary.uploader
import pytest
from django.core.files.uploadedfile import SimpleUploadedFile

from lockerroom.auth import issue_token
from lockerroom.models import (
    PLACEHOLDER_FAILED, PLACEHOLDER_PROCESSING, Notification, Post, PostLike, PostView,
    ReportedPost, SavedPost, StudentFollower,
)

pytestmark = pytest.mark.django_db


def upload_post(client, user, name='goal.jpg', content_type='image/jpeg', caption='What a goal'):
    return client.post(
        '/api/posts',
        {'file': SimpleUploadedFile(name, b'binary-media', content_type=content_type), 'caption': caption},
        HTTP_AUTHORIZATION=f"Bearer {issue_token(user)}",
    )


def ready_post(student, caption='Training day'):
    return Post.objects.create(
        student=student,
        media_url='https://res.cloudinary.com/demo/lockerroom/posts/images/a1',
        media_type='image',
        caption=caption,
        status='ready',
    )


# ==================== CREATE ====================

def test_create_post_uploads_and_becomes_ready(client, student, fake_cloudinary):
    response = upload_post(client, student.user)
    assert response.status_code == 202
    body = response.json()
    assert body['isProcessing'] is False
    assert body['post']['status'] == 'ready'
    assert body['post']['mediaUrl'].startswith('https://res.cloudinary.com/demo/lockerroom/posts/images')
    assert fake_cloudinary['upload'][0]['folder'] == 'lockerroom/posts/images'


def test_create_video_post_gets_thumbnail(client, student, fake_cloudinary):
    response = upload_post(client, student.user, name='run.mp4', content_type='video/mp4')
    assert response.status_code == 202
    post = Post.objects.get(id=response.json()['post']['id'])
    assert post.media_type == 'video'
    assert post.thumbnail_url.startswith('https://')
    assert fake_cloudinary['upload'][0]['resource_type'] == 'video'


def test_failed_upload_marks_post_failed(client, student, monkeypatch):
    def boom(file, **options):
        raise cloudinary.exceptions.Error("cloud down")

    monkeypatch.setattr(cloudinary.uploader, 'upload', boom)
    response = upload_post(client, student.user)
    assert response.status_code == 202
    post = Post.objects.get(id=response.json()['post']['id'])
    assert post.status == 'failed'
    assert post.media_url == PLACEHOLDER_FAILED


def test_followers_are_notified_when_post_is_ready(client, student, viewer, fake_cloudinary):
    StudentFollower.objects.create(follower=viewer, student=student)
    upload_post(client, student.user)
    notification = Notification.objects.get(user=viewer)
    assert notification.type == 'following_posted'
    assert student.name in notification.message


def test_only_students_can_post(client, viewer, fake_cloudinary):
    response = upload_post(client, viewer)
    assert response.status_code == 403


def test_post_requires_file(client, student):
    response = client.post('/api/posts', {'caption': 'no media'},
                           HTTP_AUTHORIZATION=f"Bearer {issue_token(student.user)}")
    assert response.status_code == 400


def test_unsupported_media_type(client, student, fake_cloudinary):
    response = upload_post(client, student.user, name='notes.pdf', content_type='application/pdf')
    assert response.status_code == 400
    assert response.json()['error']['code'] == 'unsupported_media'


# ==================== FEED ====================

def test_feed_hides_processing_posts(api, student, viewer):
    visible = ready_post(student)
    Post.objects.create(student=student, media_url=PLACEHOLDER_PROCESSING, status='processing')

    response = api('get', '/api/posts', user=viewer)
    assert response.status_code == 200
    ids = [p['id'] for p in response.json()['posts']]
    assert ids == [visible.id]


def test_feed_includes_engagement_and_user_state(api, student, viewer):
    post = ready_post(student)
    PostLike.objects.create(post=post, user=viewer)
    SavedPost.objects.create(post=post, user=viewer)
    StudentFollower.objects.create(follower=viewer, student=student)

    item = api('get', '/api/posts', user=viewer).json()['posts'][0]
    assert item['likesCount'] == 1
    assert item['savesCount'] == 1
    assert item['isLiked'] is True
    assert item['isSaved'] is True
    assert item['student']['isFollowing'] is True
    assert item['student']['schoolName'] == 'Riverside Academy'


def test_feed_pagination(api, student, viewer):
    for i in range(3):
        ready_post(student, caption=f"post {i}")
    body = api('get', '/api/posts', user=viewer, data={'limit': 2}).json()
    assert len(body['posts']) == 2
    assert body['hasMore'] is True


# ==================== DETAIL, DELETE, RETRY ====================

def test_owner_can_delete_post(api, student, fake_cloudinary):
    post = ready_post(student)
    post.cloudinary_public_id = 'lockerroom/posts/images/a1'
    post.save()
    response = api('delete', f'/api/posts/{post.id}', user=student.user)
    assert response.status_code == 200
    assert not Post.objects.filter(id=post.id).exists()
    assert fake_cloudinary['destroy'] == ['lockerroom/posts/images/a1']


def test_school_admin_can_delete_own_school_post(api, student, school_admin):
    post = ready_post(student)
    assert api('delete', f'/api/posts/{post.id}', user=school_admin).status_code == 200


def test_stranger_cannot_delete_post(api, student, viewer):
    post = ready_post(student)
    response = api('delete', f'/api/posts/{post.id}', user=viewer)
    assert response.status_code == 403


def test_missing_post_is_404(api, viewer):
    response = api('get', '/api/posts/999999', user=viewer)
    assert response.status_code == 404
    assert response.json()['error']['code'] == 'not_found'


def test_retry_without_original_media_fails_cleanly(api, student):
    post = Post.objects.create(student=student, media_url=PLACEHOLDER_PROCESSING, status='processing')
    response = api('post', f'/api/posts/{post.id}/retry', user=student.user)
    assert response.status_code == 200
    assert response.json()['success'] is False
    post.refresh_from_db()
    assert post.status == 'failed'


def test_retry_with_valid_media_marks_ready(api, student):
    post = ready_post(student)
    post.status = 'failed'
    post.save()
    response = api('post', f'/api/posts/{post.id}/retry', user=student.user)
    assert response.json()['success'] is True
    post.refresh_from_db()
    assert post.status == 'ready'


def test_retry_ready_post_is_rejected(api, student):
    post = ready_post(student)
    response = api('post', f'/api/posts/{post.id}/retry', user=student.user)
    assert response.status_code == 400


# ==================== INTERACTIONS ====================

def test_like_is_idempotent_and_notifies_owner(api, student, viewer):
    post = ready_post(student)
    api('post', f'/api/posts/{post.id}/like', user=viewer)
    response = api('post', f'/api/posts/{post.id}/like', user=viewer)
    assert response.json()['likesCount'] == 1
    assert Notification.objects.filter(user=student.user, type='post_liked').count() == 1

    response = api('delete', f'/api/posts/{post.id}/like', user=viewer)
    assert response.json() == {'success': True, 'isLiked': False, 'likesCount': 0, 'savesCount': 0,
                               'commentsCount': 0}


def test_liking_own_post_does_not_notify(api, student):
    post = ready_post(student)
    api('post', f'/api/posts/{post.id}/like', user=student.user)
    assert not Notification.objects.filter(user=student.user).exists()


def test_save_and_list_saved_posts(api, student, viewer):
    post = ready_post(student)
    api('post', f'/api/posts/{post.id}/save', user=viewer)
    saved = api('get', '/api/saved-posts', user=viewer).json()['posts']
    assert [p['id'] for p in saved] == [post.id]
    assert saved[0]['isSaved'] is True


def test_comments(api, student, viewer):
    post = ready_post(student)
    empty = api('post', f'/api/posts/{post.id}/comments', user=viewer, data={'content': '   '})
    assert empty.status_code == 400

    created = api('post', f'/api/posts/{post.id}/comments', user=viewer, data={'content': 'Great touch'})
    assert created.status_code == 201
    comment_id = created.json()['id']

    listed = api('get', f'/api/posts/{post.id}/comments', user=viewer).json()['comments']
    assert listed[0]['content'] == 'Great touch'
    assert listed[0]['user']['name'] == viewer.name

    assert api('delete', f'/api/comments/{comment_id}', user=student.user).status_code == 403
    assert api('delete', f'/api/comments/{comment_id}', user=viewer).status_code == 200


def test_view_recorded_once_per_user(api, student, viewer):
    post = ready_post(student)
    first = api('post', f'/api/posts/{post.id}/view', user=viewer).json()
    second = api('post', f'/api/posts/{post.id}/view', user=viewer).json()
    assert first['recorded'] is True
    assert second['recorded'] is False
    assert PostView.objects.filter(post=post).count() == 1


def test_report_post_once(api, student, viewer, sysadmin):
    post = ready_post(student)
    first = api('post', f'/api/posts/{post.id}/report', user=viewer, data={'reason': 'spam'})
    assert first.status_code == 201
    second = api('post', f'/api/posts/{post.id}/report', user=viewer, data={'reason': 'spam'})
    assert second.status_code == 409
    assert ReportedPost.objects.count() == 1
    assert Notification.objects.filter(user=sysadmin, type='post_reported').exists()


# ==================== UPLOADS & PLACEHOLDERS ====================

def test_placeholder_svg(client):
    response = client.get('/api/placeholder/processing')
    assert response.status_code == 200
    assert response['Content-Type'] == 'image/svg+xml'
    assert b'<svg' in response.content


def test_generic_image_upload(client, viewer, fake_cloudinary):
    response = client.post(
        '/api/upload/image?folder=covers',
        {'file': SimpleUploadedFile('cover.png', b'png', content_type='image/png')},
        HTTP_AUTHORIZATION=f"Bearer {issue_token(viewer)}",
    )
    assert response.status_code == 200
    assert response.json()['publicId'].startswith('lockerroom/covers/')


def test_upload_unavailable_without_cloudinary(client, settings, viewer):
    settings.CLOUDINARY = {'cloud_name': '', 'api_key': '', 'api_secret': ''}
    response = client.post(
        '/api/upload/image',
        {'file': SimpleUploadedFile('cover.png', b'png', content_type='image/png')},
        HTTP_AUTHORIZATION=f"Bearer {issue_token(viewer)}",
    )
    assert response.status_code == 503
    assert response.json()['error']['code'] == 'media_unavailable'
