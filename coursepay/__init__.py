import os
import logging

import click
from flask import Flask, jsonify
from flask_wtf.csrf import CSRFError
from werkzeug.security import generate_password_hash

from coursepay.config import config_by_name
from coursepay.extensions import db, migrate, login_manager, csrf, limiter


def create_app(config_name=None):
    """Application factory."""

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])

    # --- Validate required env vars (skip in testing) ---
    if config_name != "testing":
        try:
            config_by_name[config_name].validate()
        except RuntimeError as e:
            app.logger.warning(f"Config validation: {e}")

    # --- Init extensions ---
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    limiter.init_app(app)

    # --- Import models so Alembic can discover them ---
    with app.app_context():
        from coursepay import models  # noqa: F401

    # --- Register blueprints ---
    from coursepay.blueprints.auth import auth_bp
    from coursepay.blueprints.checkout import checkout_bp
    from coursepay.blueprints.admin import admin_bp
    from coursepay.blueprints.webhooks import webhooks_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(checkout_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(webhooks_bp)

    # Exempt webhooks from CSRF — raw body needed for Paystack signature verification
    csrf.exempt(webhooks_bp)

    # --- Error handlers ---
    @app.errorhandler(CSRFError)
    def csrf_error(e):
        return jsonify({"error": "csrf_failed", "message": e.description}), 400

    @app.errorhandler(403)
    def forbidden(e):
        return jsonify({"error": "forbidden", "message": "Access denied."}), 403

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "not_found", "message": "Not found."}), 404

    @app.errorhandler(429)
    def rate_limited(e):
        return jsonify({"error": "rate_limited", "message": "Too many requests."}), 429

    @app.errorhandler(500)
    def server_error(e):
        return jsonify({"error": "server_error", "message": "Internal server error."}), 500

    # --- CLI commands ---
    register_cli(app)

    # --- Security headers ---
    @app.after_request
    def add_security_headers(response):
        """Add security headers to every response."""
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        # Control referrer information
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # Payment status responses must never be served from a cache
        if response.mimetype == "application/json":
            response.headers["Cache-Control"] = "no-store"
        # Content Security Policy
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; "
            "script-src 'self' https://js.paystack.co; "
            "connect-src 'self' https://api.paystack.co; "
            "frame-src https://checkout.paystack.com; "
            "base-uri 'self'; "
            "form-action 'self' https://checkout.paystack.com; "
            "frame-ancestors 'none';"
        )
        # Strict Transport Security (only in production)
        if not app.debug:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response

    # --- Logging ---
    if not app.debug:
        logging.basicConfig(level=logging.INFO)

    return app


def register_cli(app):
    """Register custom CLI commands with the Flask app."""

    @app.cli.command("seed-admin")
    @click.option("--email", default="admin@coursepay.local", help="Admin email")
    @click.option("--password", default="admin123", help="Admin password")
    def seed_admin(email, password):
        """Create an admin user.

        Usage:
            flask seed-admin
            flask seed-admin --email admin@example.com --password s3cret
        """
        from coursepay.models.user import User

        existing = User.query.filter_by(email=email).first()
        if existing:
            click.echo(f"Admin user already exists: {email}")
            return

        admin = User(
            email=email,
            password_hash=generate_password_hash(password),
            full_name="Admin",
            is_admin=True,
        )
        db.session.add(admin)
        db.session.commit()
        click.echo(f"Created admin user: {email}")

    @app.cli.command("seed-course")
    @click.option("--title", default="Demo Course", help="Course title")
    @click.option("--slug", default="demo-course", help="URL slug")
    @click.option("--price", default="15000", help="Price in major units, e.g. 15000 or 99.50")
    def seed_course(title, slug, price):
        """Create a published course to test checkout against."""
        from decimal import Decimal, InvalidOperation

        from coursepay.models.course import Course

        try:
            amount = Decimal(price)
        except InvalidOperation:
            click.echo(f"ERROR: invalid price {price!r}")
            return

        if Course.query.filter_by(slug=slug).first():
            click.echo(f"Course already exists: {slug}")
            return

        course = Course(
            title=title,
            slug=slug,
            price=amount,
            currency=app.config["PAYMENT_CURRENCY"],
            status="published",
        )
        db.session.add(course)
        db.session.commit()
        click.echo(f"Created course {course.slug} (id: {course.id}, price: {amount})")

    @app.cli.command("set-payment-keys")
    @click.option("--admin-email", required=True, help="Admin performing the change")
    @click.option("--public-key", required=True, help="Gateway public key (pk_...)")
    @click.option("--secret-key", prompt=True, hide_input=True, help="Gateway secret key (sk_...)")
    @click.option("--inactive", is_flag=True, help="Store the keys but leave the gateway inactive.")
    def set_payment_keys(admin_email, public_key, secret_key, inactive):
        """Store gateway keys (secret encrypted with PAYMENT_ENCRYPTION_KEY).

        Usage:
            flask set-payment-keys --admin-email admin@example.com --public-key pk_test_...
        """
        from coursepay.models.user import User
        from coursepay.services.settings_store import SettingsStore

        admin = User.query.filter_by(email=admin_email.lower().strip()).first()
        if admin is None or not admin.is_admin:
            click.echo(f"ERROR: {admin_email} is not an admin user.")
            return

        gateway = app.config["PAYMENT_GATEWAY_NAME"]
        SettingsStore().upsert(
            gateway,
            admin,
            public_key=public_key,
            secret_key=secret_key,
            is_active=not inactive,
        )
        key_mode = "Live" if secret_key.startswith("sk_live_") else "Test"
        click.echo(f"Stored {gateway} keys ({key_mode} mode, active={not inactive}).")
