# routes/content_routes.py
"""
Legal pages and footer content shown on the customer website.

Endpoints:
- GET  /api/legal               -> all legal pages, newest update first
- PUT  /api/legal               -> upsert one page by type (staff)
- POST /api/import-from-customer -> copy one legal page from the customer website (staff)
- GET  /api/footer              -> footer settings row
- PUT  /api/footer              -> upsert footer settings (staff)
- GET  /api/content             -> footer + legal pages keyed by type
- POST /api/content/initialize  -> seed defaults where missing (owner/admin)
- POST /api/content/clear       -> delete all legal pages and footer rows (owner/admin)
"""
from flask import Blueprint, request, jsonify, current_app
from sqlalchemy.exc import SQLAlchemyError

from staff_portal.extensions import db
from staff_portal.models import FooterSettings, LegalPage, LegalPageType
from staff_portal.auth import staff_required, ANALYTICS_ROLES
from staff_portal.activity import record_activity
from staff_portal.routes.sync_routes import customer_request, json_body

content_bp = Blueprint("content", __name__)

LEGAL_TYPES = tuple(t.value for t in LegalPageType)
FOOTER_FIELDS = ["company_name", "description", "address", "phone", "email",
                 "dining_hours", "dining_location"]
SOCIAL_NETWORKS = ("facebook", "instagram", "twitter", "linkedin")

DEFAULT_FOOTER = {
    "company_name": "Port Antonio Resort",
    "description": "Luxury beachfront resort with world-class dining",
    "address": "Port Antonio, Mastita, Lebanon",
    "phone": "+1 (876) 555-0123",
    "email": "info@portantonio.com",
    "dining_hours": "Dining Available 24/7",
    "dining_location": "Main Restaurant & Beachside",
    "social_links": {
        "facebook": "https://facebook.com/portantonio",
        "instagram": "https://instagram.com/portantonio",
        "twitter": "https://twitter.com/portantonio",
        "linkedin": "https://linkedin.com/company/portantonio",
    },
}

DEFAULT_LEGAL_PAGES = [
    {
        "type": "privacy",
        "title": "Privacy Policy",
        "sections": [
            {"id": "1", "title": "Information We Collect", "order": 1,
             "content": "We collect the information you provide when you make reservations, "
                        "place orders, or contact us: your name, email address, phone number "
                        "and any special requests."},
            {"id": "2", "title": "How We Use Your Information", "order": 2,
             "content": "We use your information to process reservations and orders, "
                        "communicate with you about your visit, and improve our service."},
            {"id": "3", "title": "Data Protection", "order": 3,
             "content": "We do not sell, trade, or share your personal information with third "
                        "parties without your consent, except as required by law."},
        ],
    },
    {
        "type": "terms",
        "title": "Terms of Service",
        "sections": [
            {"id": "1", "title": "Acceptance of Terms", "order": 1,
             "content": "By using our services you agree to be bound by these terms and conditions."},
            {"id": "2", "title": "Reservations", "order": 2,
             "content": "Reservations are held for 15 minutes past the booked time. Please let us "
                        "know in advance if your plans change."},
        ],
    },
    {
        "type": "accessibility",
        "title": "Accessibility Statement",
        "sections": [
            {"id": "1", "title": "Our Commitment", "order": 1,
             "content": "We aim to make our website and venue accessible to every guest. "
                        "Contact us if you encounter any barrier."},
        ],
    },
]


def clean_sections(sections):
    """Validate legal sections; missing ids and orders are filled by position."""
    if not isinstance(sections, list):
        raise ValueError("sections must be a list")
    cleaned = []
    for position, section in enumerate(sections, start=1):
        if not isinstance(section, dict):
            raise ValueError("each section must be an object")
        content = section.get("content")
        if not isinstance(content, str):
            raise ValueError("each section needs text content")
        try:
            order = int(section.get("order", position))
        except (TypeError, ValueError):
            raise ValueError("section order must be an integer")
        cleaned.append({
            "id": str(section.get("id") or position),
            "title": str(section.get("title") or ""),
            "content": content,
            "order": order,
        })
    return cleaned


def clean_social_links(links):
    if links is None:
        return {}
    if not isinstance(links, dict):
        raise ValueError("social_links must be an object")
    return {k: str(v) for k, v in links.items() if k in SOCIAL_NETWORKS and v}


def _footer_row():
    return FooterSettings.query.order_by(FooterSettings.id).first()


def save_legal_page(staff, page_type, title, sections, action="update_legal_page"):
    """Upsert one legal page by type and log it; returns (page, None) or (None, error response)."""
    page = LegalPage.query.filter_by(type=page_type).first()
    if page is None:
        page = LegalPage(type=page_type)
        db.session.add(page)
    page.title = title
    page.sections = sections
    try:
        db.session.flush()
        record_activity(staff, action, "legal_page", page.id, {"type": page_type})
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Error saving legal page %s", page_type)
        return None, (jsonify({"error": "Failed to save legal page"}), 500)
    return page, None


# ------------------ LEGAL PAGES ------------------
@content_bp.route("/legal", methods=["GET"])
def list_legal_pages():
    pages = LegalPage.query.order_by(LegalPage.updated_at.desc()).all()
    return jsonify({"legalPages": [p.to_dict() for p in pages]})


@content_bp.route("/legal", methods=["PUT"])
@staff_required()
def upsert_legal_page(staff):
    data = request.get_json(silent=True) or {}
    page_type = data.get("type")
    title = data.get("title")
    title = title.strip() if isinstance(title, str) else ""
    if page_type not in LEGAL_TYPES:
        return jsonify({"error": f"type must be one of: {', '.join(LEGAL_TYPES)}"}), 400
    if not title:
        return jsonify({"error": "title is required"}), 400
    try:
        sections = clean_sections(data.get("sections", []))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    page, error = save_legal_page(staff, page_type, title, sections)
    if error:
        return error
    return jsonify({"legalPage": page.to_dict()})


@content_bp.route("/import-from-customer", methods=["POST"])
@staff_required()
def import_legal_page(staff):
    data = request.get_json(silent=True) or {}
    page_type = data.get("type")
    if page_type not in LEGAL_TYPES:
        return jsonify({"error": f"type must be one of: {', '.join(LEGAL_TYPES)}"}), 400

    response, error = customer_request("GET", "/api/legal", params={"type": page_type},
                                       failure=f"Failed to fetch customer {page_type}")
    if error:
        return error
    body = json_body(response)
    pages = body.get("legalPages") if isinstance(body, dict) else None
    source = pages[0] if isinstance(pages, list) and pages else None
    if not isinstance(source, dict):
        return jsonify({"error": "No source page found"}), 404

    title = source.get("title")
    title = title.strip() if isinstance(title, str) and title.strip() else page_type.title()
    sections = source.get("sections")
    try:
        sections = clean_sections(sections if isinstance(sections, list) else [])
    except ValueError as e:
        return jsonify({"error": f"Customer legal page is invalid: {e}"}), 502

    page, error = save_legal_page(staff, page_type, title, sections, action="import_legal_page")
    if error:
        return error
    current_app.logger.info("Imported %s legal page from the customer website", page_type)
    return jsonify({"legalPage": page.to_dict()})


# ------------------ FOOTER ------------------
@content_bp.route("/footer", methods=["GET"])
def get_footer():
    footer = _footer_row()
    return jsonify({"footer": footer.to_dict() if footer else None})


@content_bp.route("/footer", methods=["PUT"])
@staff_required()
def upsert_footer(staff):
    data = request.get_json(silent=True) or {}
    try:
        social_links = clean_social_links(data.get("social_links"))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    footer = _footer_row()
    if footer is None:
        footer = FooterSettings()
        db.session.add(footer)
    for key in FOOTER_FIELDS:
        if key in data:
            setattr(footer, key, str(data[key] or ""))
    if "social_links" in data:
        footer.social_links = social_links
    try:
        db.session.flush()
        record_activity(staff, "update_footer", "footer_settings", footer.id,
                        {"fields": sorted(k for k in data if k in FOOTER_FIELDS or k == "social_links")})
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Error saving footer settings")
        return jsonify({"error": "Failed to save footer"}), 500
    return jsonify({"footer": footer.to_dict()})


# ------------------ CUSTOMER CONTENT ------------------
@content_bp.route("/content", methods=["GET"])
def customer_content():
    footer = _footer_row()
    legal = {p.type: p.to_dict() for p in LegalPage.query.all()}
    return jsonify({"footer": footer.to_dict() if footer else None, "legal": legal, "success": True})


@content_bp.route("/content/initialize", methods=["POST"])
@staff_required(*ANALYTICS_ROLES)
def initialize_content(staff):
    created = []
    if _footer_row() is None:
        db.session.add(FooterSettings(**DEFAULT_FOOTER))
        created.append("footer")
    existing = {t for (t,) in db.session.query(LegalPage.type).all()}
    for page in DEFAULT_LEGAL_PAGES:
        if page["type"] not in existing:
            db.session.add(LegalPage(type=page["type"], title=page["title"], sections=page["sections"]))
            created.append(page["type"])
    record_activity(staff, "initialize_content", "content", None, {"created": created})
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Error initializing content")
        return jsonify({"error": "Failed to initialize content"}), 500
    return jsonify({"success": True, "created": created,
                    "message": "Content initialized" if created else "Content already present"})


@content_bp.route("/content/clear", methods=["POST"])
@staff_required(*ANALYTICS_ROLES)
def clear_content(staff):
    try:
        legal_count = LegalPage.query.delete()
        footer_count = FooterSettings.query.delete()
        record_activity(staff, "clear_content", "content", None,
                        {"legal_pages": legal_count, "footer_rows": footer_count})
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Error clearing content")
        return jsonify({"error": "Failed to clear content"}), 500
    return jsonify({"success": True, "message": "Legal pages and footer settings cleared",
                    "deleted": {"legalPages": legal_count, "footer": footer_count}})
