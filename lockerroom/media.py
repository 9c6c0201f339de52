"""
Cloudinary media handling.

Post media follows a placeholder-then-upload flow:

    1. The view saves a Post with status "processing" and placeholder URLs.
    2. start_post_upload() hands the file bytes to a daemon thread once the
       transaction commits.
    3. process_post_upload() uploads to Cloudinary and flips the post to
       "ready" (and notifies followers) or to "failed".

Clients poll GET /api/posts/<id> until the status leaves "processing".
"""

import io
import logging
import threading
from collections import namedtuple

import cloudinary
import cloudinary.uploader
import cloudinary.utils
from django.conf import settings
from django.db import connection, transaction

from .analytics import log_event
from .models import PLACEHOLDER_FAILED, PLACEHOLDER_FAILED_THUMBNAIL, Post
from .notifications import notify_followers_of_new_post

logger = logging.getLogger(__name__)

UploadResult = namedtuple('UploadResult', ['url', 'public_id', 'resource_type', 'thumbnail_url'])

FOLDER_ROOT = 'lockerroom'
LARGE_VIDEO_BYTES = 20 * 1024 * 1024
UPLOAD_CHUNK_SIZE = 6000000


class UnsupportedMediaType(ValueError):
    pass


def configure():
    cloudinary.config(
        cloud_name=settings.CLOUDINARY['cloud_name'],
        api_key=settings.CLOUDINARY['api_key'],
        api_secret=settings.CLOUDINARY['api_secret'],
        secure=True,
    )


def is_configured():
    return all(settings.CLOUDINARY.get(key) for key in ('cloud_name', 'api_key', 'api_secret'))


def media_type_for(content_type):
    """Map an upload's MIME type to "image" or "video"."""
    content_type = (content_type or '').lower()
    if content_type.startswith('image/'):
        return 'image'
    if content_type.startswith('video/'):
        return 'video'
    raise UnsupportedMediaType(f"Unsupported file type: {content_type or 'unknown'}")


def video_thumbnail_url(public_id):
    url, _options = cloudinary.utils.cloudinary_url(
        public_id,
        resource_type='video',
        format='jpg',
        transformation=[
            {'width': 400, 'crop': 'scale'},
            {'quality': 'auto', 'fetch_format': 'auto'},
        ],
    )
    return url


def upload_file(file, folder, media_type, size=None):
    """
    Upload ``file`` (file object or bytes) to ``lockerroom/<folder>``.

    Large videos are sent in chunks. Raises cloudinary.exceptions.Error on
    failure.
    """
    configure()
    options = {
        'folder': f"{FOLDER_ROOT}/{folder}",
        'resource_type': media_type,
    }
    if media_type == 'video':
        options['eager'] = [{'width': 400, 'crop': 'scale', 'quality': 'auto', 'fetch_format': 'auto'}]
        options['eager_async'] = True

    if media_type == 'video' and size and size > LARGE_VIDEO_BYTES:
        result = cloudinary.uploader.upload_large(file, chunk_size=UPLOAD_CHUNK_SIZE, **options)
    else:
        result = cloudinary.uploader.upload(file, **options)

    thumbnail = video_thumbnail_url(result['public_id']) if media_type == 'video' else ''
    return UploadResult(
        url=result['secure_url'],
        public_id=result['public_id'],
        resource_type=result.get('resource_type', media_type),
        thumbnail_url=thumbnail,
    )


def upload_profile_picture(file, folder='profile-pics'):
    """Square 400x400 avatar cropped around the face."""
    configure()
    result = cloudinary.uploader.upload(
        file,
        folder=f"{FOLDER_ROOT}/{folder}",
        resource_type='image',
        transformation=[{'width': 400, 'height': 400, 'crop': 'fill', 'gravity': 'face'}],
    )
    return result['secure_url']


# ============================================================================
# POST UPLOAD PIPELINE
# ============================================================================

def start_post_upload(post, uploaded_file):
    """Queue the media upload for a freshly created placeholder post."""
    data = uploaded_file.read()
    name = uploaded_file.name
    media_type = post.media_type

    if not settings.BACKGROUND_UPLOADS:
        process_post_upload(post.id, data, name, media_type)
        return

    def launch():
        worker = threading.Thread(
            target=run_in_thread,
            args=(post.id, data, name, media_type),
            name=f"post-upload-{post.id}",
            daemon=True,
        )
        worker.start()

    transaction.on_commit(launch)


def run_in_thread(post_id, data, name, media_type):
    try:
        process_post_upload(post_id, data, name, media_type)
    finally:
        connection.close()


def process_post_upload(post_id, data, name, media_type):
    """Upload the bytes and settle the post as ready or failed."""
    logger.info(f"Starting background upload for post {post_id} ({name}, {len(data)} bytes)")
    folder = 'posts/videos' if media_type == 'video' else 'posts/images'

    try:
        stream = io.BytesIO(data)
        stream.name = name
        result = upload_file(stream, folder, media_type, size=len(data))
    except Exception as e:
        logger.error(f"Background upload failed for post {post_id}: {e}", exc_info=True)
        Post.objects.filter(id=post_id).update(
            status='failed',
            media_url=PLACEHOLDER_FAILED,
            thumbnail_url=PLACEHOLDER_FAILED_THUMBNAIL,
        )
        return None

    updated = Post.objects.filter(id=post_id).update(
        status='ready',
        media_url=result.url,
        cloudinary_public_id=result.public_id,
        thumbnail_url=result.thumbnail_url,
    )
    if not updated:
        # Post was deleted while uploading
        logger.warning(f"Post {post_id} disappeared before upload finished; removing {result.public_id}")
        cloudinary.uploader.destroy(result.public_id, resource_type=media_type)
        return None

    logger.info(f"Background upload completed for post {post_id}")
    post = Post.objects.select_related('student__user').get(id=post_id)
    notify_followers_of_new_post(post)
    log_event('post_created', entity_type='post', entity_id=post.id,
              metadata={'studentId': post.student_id, 'mediaType': media_type})
    return post
