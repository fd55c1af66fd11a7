# routes/upload_routes.py
import os
import time

from flask import Blueprint, request, jsonify, current_app, send_from_directory
from werkzeug.utils import secure_filename

from staff_portal.auth import staff_required

upload_bp = Blueprint("uploads", __name__)

ALLOWED_MIME_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp"}


def upload_folder():
    folder = current_app.config["UPLOAD_FOLDER"]
    os.makedirs(folder, exist_ok=True)
    return folder


def _file_size(file):
    stream = file.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def build_filename(kind, original_name, stamp):
    prefix = secure_filename(kind or "") or "upload"
    extension = os.path.splitext(secure_filename(original_name or ""))[1].lower()
    return f"{prefix}-{stamp}{extension}"


def open_new_upload(folder, kind, original_name):
    """Create the upload file exclusively; a taken name moves the stamp on by one millisecond."""
    stamp = int(time.time() * 1000)
    while True:
        filename = build_filename(kind, original_name, stamp)
        try:
            return filename, open(os.path.join(folder, filename), "xb")
        except FileExistsError:
            stamp += 1


@upload_bp.route("/upload", methods=["POST"])
@staff_required()
def upload_image(staff):
    file = request.files.get("file")
    if file is None or file.filename == "":
        return jsonify({"error": "No file provided"}), 400
    if file.mimetype not in ALLOWED_MIME_TYPES:
        return jsonify({"error": "Invalid file type. Only JPEG, PNG, and WebP are allowed."}), 400

    size = _file_size(file)
    max_bytes = current_app.config["MAX_UPLOAD_BYTES"]
    if size > max_bytes:
        return jsonify({"error": f"File too large. Maximum size is {max_bytes // (1024 * 1024)}MB."}), 400

    try:
        filename, target = open_new_upload(upload_folder(), request.form.get("type"), file.filename)
        with target:
            file.save(target)
    except OSError:
        current_app.logger.exception("Saving upload %s failed", file.filename)
        return jsonify({"error": "Upload failed"}), 500

    current_app.logger.info("Staff %s uploaded %s (%s bytes)", staff.username, filename, size)
    return jsonify({"url": f"/api/uploads/{filename}", "filename": filename, "size": size})


# Serve uploaded files
@upload_bp.route("/uploads/<path:filename>")
def uploaded_file(filename):
    return send_from_directory(upload_folder(), filename)
