"""Centralized error handlers for HTML and JSON responses."""

from __future__ import annotations

from flask import jsonify, render_template, request


def wants_json() -> bool:
    return request.path.startswith("/api/") or (
        request.accept_mimetypes["application/json"] > request.accept_mimetypes["text/html"]
    )


def json_error(code: str, detail: str, status: int):
    payload = {"error": code, "detail": detail}
    return jsonify(payload), status


def register_error_handlers(app) -> None:
    """Register error handlers on the Flask app."""

    @app.errorhandler(403)
    def forbidden(err):  # type: ignore[no-redef]
        if wants_json():
            return json_error("forbidden", "You do not have access to this resource.", 403)
        return render_template("shared/system/404.html", e=err), 403

    @app.errorhandler(404)
    def not_found(err):  # type: ignore[no-redef]
        if wants_json():
            return json_error("not_found", "Resource not found.", 404)
        return render_template("shared/system/404.html", e=err), 404

    @app.errorhandler(500)
    def internal(err):  # type: ignore[no-redef]
        from extensions import db

        db.session.rollback()
        if wants_json():
            return json_error("server_error", "A server error occurred.", 500)
        return render_template(
            "shared/system/500.html",
            e=err,
            message="A database error occurred. Please try again.",
        ), 500
