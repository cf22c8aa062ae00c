"""Flask application factory, CLI entry points, and database bootstrap."""

import json
import logging
from logging.handlers import RotatingFileHandler
import os
import sqlite3
import uuid
from pathlib import Path

import click
from flask import Flask, g, has_request_context, jsonify, redirect, request, flash, url_for
from flask_compress import Compress
from flask_talisman import Talisman
from sqlalchemy import event, func
from sqlalchemy.engine import Engine

from dotenv import load_dotenv; load_dotenv()

from config import Config, INSTANCE_DIR as CONFIG_INSTANCE_DIR
from extensions import db, migrate, cache, csrf, limiter, login_manager, generate_csrf
from utils.error_handlers import register_error_handlers, wants_json


class RequestIdFilter(logging.Filter):
    """Inject request-scoped metadata into log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            record.request_id = getattr(g, "request_id", "n/a")
            record.path = request.path
            record.method = request.method
        else:
            record.request_id = getattr(record, "request_id", "startup")
            record.path = getattr(record, "path", "")
            record.method = getattr(record, "method", "")
        return True


class JsonRequestFormatter(logging.Formatter):
    """One JSON object per line for log ingestion."""

    def format(self, record: logging.LogRecord) -> str:
        base = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "n/a"),
            "path": getattr(record, "path", ""),
            "method": getattr(record, "method", ""),
        }
        if record.exc_info:
            base["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(base, ensure_ascii=False)


def _configure_logging(app: Flask) -> None:
    """Configure structured logging with request IDs."""
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    stream_handler = logging.StreamHandler()
    stream_handler.addFilter(RequestIdFilter())
    stream_handler.setFormatter(JsonRequestFormatter())
    stream_handler.setLevel(level)

    handlers: list[logging.Handler] = [stream_handler]

    try:
        logs_dir = Path(app.instance_path) / "logs"
        logs_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            logs_dir / "app.log",
            maxBytes=5 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.addFilter(RequestIdFilter())
        file_handler.setFormatter(JsonRequestFormatter())
        file_handler.setLevel(level)
        handlers.append(file_handler)
    except OSError as exc:
        app.logger.warning("Falling back to stream-only logging (file handler unavailable): %s", exc)

    app.logger.handlers = handlers
    app.logger.setLevel(level)
    logging.getLogger("werkzeug").handlers = handlers
    logging.getLogger("werkzeug").setLevel(level)


def _configure_login_manager(app: Flask) -> None:
    """Bind Flask-Login and support API token authentication."""
    login_manager.init_app(app)
    login_manager.login_view = "views.login"
    login_manager.login_message_category = "warning"
    login_manager.session_protection = "strong"

    def _extract_token(req):
        auth_header = req.headers.get("Authorization", "")
        if auth_header.lower().startswith("bearer "):
            return auth_header.split(" ", 1)[1].strip()
        return None

    @login_manager.user_loader
    def _load_user(user_id: str):
        from models import User

        try:
            return db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None

    @login_manager.request_loader
    def _load_user_from_request(req):
        from models import User

        token = _extract_token(req)
        if not token:
            return None
        return User.verify_api_token(token)

    @login_manager.unauthorized_handler
    def _unauthorized():
        if wants_json():
            return jsonify({"error": "authentication_required"}), 401
        flash("Please sign in to continue.", "warning")
        return redirect(url_for("views.login", next=request.full_path.rstrip("?")))


def create_app():
    """Create, configure, and return a fully-initialised Flask app."""
    app = Flask(
        __name__,
        instance_path=str(CONFIG_INSTANCE_DIR),
        instance_relative_config=False,
    )
    app.config.from_object(Config)
    os.makedirs(app.instance_path, exist_ok=True)
    _configure_logging(app)

    # If no DB URI provided, store SQLite DB in instance/
    if not app.config.get("SQLALCHEMY_DATABASE_URI"):
        app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{os.path.join(app.instance_path, 'deckledger.db')}"

    # --- Core extensions ---
    db.init_app(app)
    migrate.init_app(app, db, render_as_batch=True)
    cache.init_app(app)
    _configure_login_manager(app)
    csrf.init_app(app)
    app.jinja_env.globals["csrf_token"] = generate_csrf
    Compress(app)
    limiter.init_app(app)

    if app.config.get("ENABLE_TALISMAN", True):
        Talisman(
            app,
            content_security_policy=app.config.get("CONTENT_SECURITY_POLICY"),
            force_https=app.config.get("TALISMAN_FORCE_HTTPS", not app.debug),
            session_cookie_secure=app.config.get("SESSION_COOKIE_SECURE", True),
            session_cookie_samesite=app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        )

    register_error_handlers(app)

    # Blueprints
    from routes import api_bp, views
    app.register_blueprint(views)
    app.register_blueprint(api_bp)

    @app.context_processor
    def inject_nav():
        return {"nav_links": [
            ("views.dashboard", "Dashboard"),
            ("views.decks_index", "Decks"),
            ("views.games_index", "Games"),
            ("views.players_index", "Players"),
            ("views.statistics", "Statistics"),
        ]}

    @app.before_request
    def assign_request_id():
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex

    @app.after_request
    def attach_request_id(resp):
        rid = getattr(g, "request_id", None)
        if rid:
            resp.headers.setdefault("X-Request-ID", rid)
        return resp

    @app.after_request
    def security_headers(resp):
        """Attach a minimal set of security-related HTTP headers to each response."""
        resp.headers.setdefault("X-Content-Type-Options", "nosniff")
        resp.headers.setdefault("Referrer-Policy", "no-referrer-when-downgrade")
        resp.headers.setdefault("X-Frame-Options", "DENY")
        return resp

    _register_cli(app)
    return app


def _register_cli(app: Flask) -> None:
    from models import Deck, Player
    from services import stats
    from services.participations import deck_totals
    from services.statistics_service import statistics_for_player

    @app.cli.command("init-db")
    def init_db():
        """Create any missing tables (use `flask db upgrade` once migrations exist)."""
        db.create_all()
        click.echo("Database tables ensured.")

    @app.cli.command("create-player")
    @click.argument("username")
    @click.option("--display-name", default=None, help="Name shown instead of the username.")
    def create_player(username, display_name):
        """Add a guest player without a login (for friends who only show up at the table)."""
        username = username.strip().lower()
        if Player.query.filter(func.lower(Player.username) == username).first():
            raise click.ClickException(f"Player '{username}' already exists.")
        player = Player(username=username, display_name=display_name or None)
        db.session.add(player)
        db.session.commit()
        click.echo(f"Created player {player.id}: {username}")

    @app.cli.command("inactive-decks")
    @click.option("--days", type=int, default=None, help="Override INACTIVE_AFTER_DAYS.")
    def inactive_decks(days):
        """List decks not played within the inactivity window (or flagged inactive)."""
        threshold = days if days is not None else app.config.get("INACTIVE_AFTER_DAYS", stats.INACTIVE_AFTER_DAYS)
        decks = Deck.query.order_by(Deck.player_id, func.lower(Deck.name)).all()
        totals = deck_totals([deck.id for deck in decks])
        found = 0
        for deck in decks:
            last_played = (totals.get(deck.id) or {}).get("last_played_at")
            if not stats.deck_is_inactive(deck.flagged_inactive, last_played, threshold_days=threshold):
                continue
            found += 1
            when = last_played.strftime("%Y-%m-%d") if last_played else "never"
            click.echo(f"{deck.player.username}\t{deck.name}\tlast played: {when}")
        click.echo(f"{found} inactive deck(s) (threshold {threshold} days).")

    @app.cli.command("stats-report")
    @click.argument("username")
    @click.option("--json", "as_json", is_flag=True, help="Output raw JSON.")
    def stats_report(username, as_json):
        """Print a player's statistics."""
        player = Player.query.filter(func.lower(Player.username) == username.strip().lower()).first()
        if player is None:
            raise click.ClickException(f"No player named '{username}'.")
        report = statistics_for_player(player.id)
        if as_json:
            click.echo(json.dumps(report, indent=2, sort_keys=True, default=str))
            return
        click.echo(f"Player: {player.label}")
        click.echo(f"  Games: {report['total_games']}  Wins: {report['wins']}  Win rate: {report['win_rate']}%")
        click.echo(f"  Decks: {report['total_decks']}  Players faced: {report['total_players']}")
        for key, title in (("most_played_deck", "Most played"), ("least_played_deck", "Least played")):
            deck = report[key]
            if deck:
                click.echo(f"  {title}: {deck['name']} ({deck['games_played']} games, {deck['win_rate']}%)")


# Single SQLite PRAGMA hook (avoid duplicate listeners)
_SQLITE_PRAGMA_STATEMENTS = (
    "PRAGMA foreign_keys=ON;",
    "PRAGMA journal_mode=WAL;",
    "PRAGMA synchronous=NORMAL;",
)


@event.listens_for(Engine, "connect")
def _sqlite_pragmas(dbapi_connection, _) -> None:
    """Apply PRAGMAs each time SQLite opens a connection."""
    if not isinstance(dbapi_connection, sqlite3.Connection):
        return
    cur = dbapi_connection.cursor()
    for statement in _SQLITE_PRAGMA_STATEMENTS:
        cur.execute(statement)
    cur.close()


if __name__ == "__main__":
    _app = create_app()
    _app.run(host="127.0.0.1", port=5000, debug=True)
