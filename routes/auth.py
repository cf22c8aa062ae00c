"""Authentication and profile routes."""

from __future__ import annotations

from urllib.parse import urlsplit

from flask import current_app, flash, redirect, render_template, request, session, url_for
from flask_login import current_user, login_required, login_user, logout_user
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from extensions import db, limiter
from models import Player, User
from services.audit import record_audit_event
from services.authz import current_player
from services.statistics_service import invalidate_statistics
from utils.time import utcnow
from utils.validation import sanitize_string, validate_email, validate_username

from .base import limiter_key_user_or_ip, views

MIN_PASSWORD_LENGTH = 8
MAX_DISPLAY_NAME_LENGTH = 120


def _safe_next(target: str | None) -> str:
    if target and target.startswith("/") and "\\" not in target:
        parts = urlsplit(target)
        if not parts.scheme and not parts.netloc:
            return target
    return url_for("views.dashboard")


@views.route("/login", methods=["GET", "POST"])
@limiter.limit("10 per minute", methods=["POST"])
def login():
    if current_user.is_authenticated:
        return redirect(_safe_next(request.args.get("next")))

    if request.method == "POST":
        identifier = (request.form.get("identifier") or "").strip()
        password = request.form.get("password") or ""
        user = None
        if identifier:
            lowered = identifier.lower()
            user = User.query.filter(func.lower(User.email) == lowered).first()
            if not user:
                user = User.query.filter(func.lower(User.username) == lowered).first()
        if not user or not user.check_password(password):
            current_app.logger.info("Failed login attempt for %r", identifier)
            flash("Invalid email/username or password.", "danger")
            return render_template("auth/login.html", identifier=identifier)

        login_user(user, remember=False, fresh=True)
        user.last_login_at = utcnow()
        record_audit_event("login", {"email": user.email})
        db.session.commit()
        return redirect(_safe_next(request.args.get("next")))

    return render_template("auth/login.html")


@views.route("/logout")
@login_required
def logout():
    record_audit_event("logout", {"email": current_user.email})
    db.session.commit()
    logout_user()
    session.clear()
    flash("Signed out successfully.", "info")
    return redirect(url_for("views.login"))


@views.route("/register", methods=["GET", "POST"])
@limiter.limit("5 per minute", methods=["POST"])
def register():
    if current_user.is_authenticated:
        return redirect(url_for("views.dashboard"))

    if request.method == "POST":
        email = (request.form.get("email") or "").strip().lower()
        username = (request.form.get("username") or "").strip().lower()
        password = (request.form.get("password") or "").strip()
        confirm = (request.form.get("confirm_password") or "").strip()
        context = {"email": email, "username": username, "min_password_length": MIN_PASSWORD_LENGTH}

        error = None
        if not email or not username or not password:
            error = "Email, username, and password are required."
        elif not validate_email(email):
            error = "Enter a valid email address."
        elif not validate_username(username):
            error = "Usernames are 3-30 letters, numbers, dashes or underscores."
        elif len(password) < MIN_PASSWORD_LENGTH:
            error = f"Password must be at least {MIN_PASSWORD_LENGTH} characters long."
        elif password != confirm:
            error = "Passwords do not match."
        elif User.query.filter(func.lower(User.email) == email).first():
            error = "That email is already registered."
        elif (
            User.query.filter(func.lower(User.username) == username).first()
            or Player.query.filter(func.lower(Player.username) == username).first()
        ):
            error = "That username is already taken."
        if error:
            flash(error, "warning")
            return render_template("auth/register.html", **context), 400

        new_user = User(email=email, username=username)
        new_user.set_password(password)
        db.session.add(new_user)
        db.session.flush()
        db.session.add(Player(user_id=new_user.id, username=username))
        record_audit_event("user_registered", {"email": email, "username": username})
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("Failed to register %s", email)
            flash("Unable to create the account right now.", "danger")
            return render_template("auth/register.html", **context), 500
        flash("Account created. Please sign in.", "success")
        return redirect(url_for("views.login"))

    return render_template("auth/register.html", min_password_length=MIN_PASSWORD_LENGTH)


def _profile_page(player: Player, *, new_token: str | None = None, status: int = 200):
    return render_template(
        "profile/index.html",
        player=player,
        new_token=new_token,
        min_password_length=MIN_PASSWORD_LENGTH,
    ), status


@views.route("/profile", methods=["GET", "POST"])
@login_required
@limiter.limit("20 per minute", key_func=limiter_key_user_or_ip, methods=["POST"])
def profile():
    player = current_player()
    if request.method == "GET":
        return _profile_page(player)

    action = request.form.get("action")
    if action == "update_display_name":
        display_name = sanitize_string(request.form.get("display_name"), max_length=MAX_DISPLAY_NAME_LENGTH)
        player.display_name = display_name or None
        db.session.commit()
        invalidate_statistics()
        flash("Display name updated successfully", "success")
        return redirect(url_for("views.profile"))

    if action == "update_password":
        current_password = request.form.get("current_password") or ""
        new_password = (request.form.get("new_password") or "").strip()
        confirm = (request.form.get("confirm_password") or "").strip()
        if not current_user.check_password(current_password):
            flash("Current password is incorrect.", "danger")
            return _profile_page(player, status=400)
        if new_password != confirm:
            flash("New passwords do not match", "warning")
            return _profile_page(player, status=400)
        if len(new_password) < MIN_PASSWORD_LENGTH:
            flash(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long.", "warning")
            return _profile_page(player, status=400)
        current_user.set_password(new_password)
        record_audit_event("password_changed", {"user_id": current_user.id})
        db.session.commit()
        flash("Password updated successfully", "success")
        return redirect(url_for("views.profile"))

    if action == "issue_token":
        token = current_user.issue_api_token()
        record_audit_event("api_token_issued", {"hint": current_user.api_token_hint})
        db.session.commit()
        flash("New API token issued. Copy it now; it will not be shown again.", "success")
        return _profile_page(player, new_token=token)

    if action == "clear_token":
        current_user.clear_api_token()
        record_audit_event("api_token_cleared", {"user_id": current_user.id})
        db.session.commit()
        flash("API token revoked.", "info")
        return redirect(url_for("views.profile"))

    flash("Unknown profile action.", "warning")
    return _profile_page(player, status=400)
