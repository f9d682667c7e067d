import logging
import os
import uuid
from datetime import date, datetime

from werkzeug.utils import secure_filename

from errors import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {
    'pdf', 'png', 'jpg', 'jpeg', 'gif',
    'doc', 'docx', 'xls', 'xlsx', 'txt', 'csv',
}


def today():
    """The clock used by the HTTP layer. Services always receive today explicitly."""
    return date.today()


def parse_date(value, field):
    """Accept a date, a datetime or an ISO ``YYYY-MM-DD`` string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            pass
    raise ValidationError({field: f"must be an ISO date YYYY-MM-DD (got {value!r})"})


def allowed_file(filename):
    """Check if the file has an allowed extension."""
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def save_upload(file, upload_folder):
    """Save an uploaded proof document and return its attachment fields, or None."""
    if not (file and file.filename and allowed_file(file.filename)):
        logger.warning("rejected upload %r: extension not allowed", getattr(file, "filename", None))
        return None
    original_name = file.filename
    stem, ext = os.path.splitext(secure_filename(original_name))
    filename = f"{stem or 'document'}-{uuid.uuid4().hex[:12]}{ext.lower()}"

    os.makedirs(upload_folder, exist_ok=True)
    filepath = os.path.join(upload_folder, filename)
    file.save(filepath)
    return {
        "filename": filename,
        "original_name": original_name,
        "path": filepath,
        "size": os.path.getsize(filepath),
        "mimetype": file.mimetype,
    }


def remove_upload(path):
    """Delete a stored upload; a file that is already gone is only logged."""
    try:
        os.remove(path)
    except FileNotFoundError:
        logger.warning("upload %s already removed", path)
