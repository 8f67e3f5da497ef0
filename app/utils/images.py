"""
Image upload handling: tour covers and galleries, user photos.
Uploads are read into memory, cropped to a fixed size with Pillow and
written as JPEG under the configured upload folder.
"""
import io
import os
import time
import logging

from PIL import Image, ImageOps, UnidentifiedImageError

from app.errors import ValidationError

logger = logging.getLogger(__name__)

TOUR_IMAGE_SIZE = (2000, 1333)
USER_PHOTO_SIZE = (500, 500)
MAX_TOUR_IMAGES = 3
DEFAULT_PHOTO = 'default.jpg'

NOT_AN_IMAGE = 'Not an image! Please upload only images.'


def _check_is_image(file):
    if not (file.mimetype or '').startswith('image/'):
        raise ValidationError(NOT_AN_IMAGE)


def resize_image(file_data, size, quality=90):
    """
    Crop and resize image bytes to exactly `size`.
    Returns the JPEG bytes.
    """
    try:
        img = Image.open(io.BytesIO(file_data))
        img.load()
    except (UnidentifiedImageError, OSError):
        raise ValidationError(NOT_AN_IMAGE)

    # Convert RGBA to RGB if necessary (for JPEG)
    if img.mode == 'RGBA':
        background = Image.new('RGB', img.size, (255, 255, 255))
        background.paste(img, mask=img.split()[3])
        img = background
    elif img.mode != 'RGB':
        img = img.convert('RGB')

    img = ImageOps.fit(img, size, Image.Resampling.LANCZOS)

    output = io.BytesIO()
    img.save(output, format='JPEG', quality=quality)
    return output.getvalue()


def _write(folder, filename, data):
    os.makedirs(folder, exist_ok=True)
    with open(os.path.join(folder, filename), 'wb') as fh:
        fh.write(data)
    logger.info(f"Stored image {filename} in {folder}")


def delete_image(folder, filename):
    """Remove a previously stored image; the default photo is never removed."""
    if not filename or filename == DEFAULT_PHOTO:
        return
    path = os.path.join(folder, os.path.basename(filename))
    if os.path.exists(path):
        os.remove(path)
        logger.info(f"Deleted image {path}")


class StoredImages:
    """
    Files written for one update, plus the files they replace.

    Nothing is removed while the update is in flight: `keep()` deletes the
    replaced files once the new filenames are committed, `discard()` deletes
    the freshly written ones when the update fails.
    """

    def __init__(self, folder):
        self.folder = folder
        self.fields = {}
        self.written = []
        self.replaced = []

    def add(self, field_name, value, written, replaced):
        self.fields[field_name] = value
        self.written.extend(written)
        self.replaced.extend(r for r in replaced if r)

    def keep(self):
        for filename in self.replaced:
            delete_image(self.folder, filename)

    def discard(self):
        for filename in self.written:
            delete_image(self.folder, filename)


def save_tour_images(tour, files, upload_folder):
    """
    Resize and store an uploaded cover (`image_cover`) and gallery (`images`).

    Args:
        tour: Tour being updated
        files: request.files mapping
        upload_folder: Root image folder

    Returns:
        StoredImages whose `fields` hold image_cover and/or images
    """
    cover = files.get('image_cover')
    gallery = [f for f in files.getlist('images') if f and f.filename] \
        if hasattr(files, 'getlist') else []
    if len(gallery) > MAX_TOUR_IMAGES:
        raise ValidationError(f'A tour can have at most {MAX_TOUR_IMAGES} images.')

    uploads = ([cover] if cover and cover.filename else []) + gallery
    for upload in uploads:
        _check_is_image(upload)
    resized = [resize_image(upload.read(), TOUR_IMAGE_SIZE) for upload in uploads]

    stored = StoredImages(os.path.join(upload_folder, 'tours'))
    stamp = int(time.time() * 1000)

    if cover and cover.filename:
        filename = f'tour-{tour.id}-{stamp}-cover.jpeg'
        _write(stored.folder, filename, resized.pop(0))
        stored.add('image_cover', filename, [filename], [tour.image_cover])

    if gallery:
        filenames = [f'tour-{tour.id}-{stamp}-{index}.jpeg'
                     for index in range(1, len(gallery) + 1)]
        for filename, data in zip(filenames, resized):
            _write(stored.folder, filename, data)
        stored.add('images', filenames, filenames, tour.images or [])

    return stored


def save_user_photo(user, file, upload_folder):
    """Resize and store a user's photo; the previous one is replaced on keep()."""
    _check_is_image(file)
    data = resize_image(file.read(), USER_PHOTO_SIZE)
    stored = StoredImages(os.path.join(upload_folder, 'users'))
    filename = f'user-{user.id}-{int(time.time() * 1000)}.jpeg'
    _write(stored.folder, filename, data)
    stored.add('photo', filename, [filename], [user.photo])
    return stored
