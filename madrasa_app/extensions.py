# madrasa_app/extensions.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy import text



db = SQLAlchemy()
migrate = Migrate()
scheduler = BackgroundScheduler(daemon=True)

def init_extensions(app):
    # DB/Migrate
    db.init_app(app)
    migrate.init_app(app, db)

def register_cli(app):
    @app.cli.command("init-db")
    def init_db_cmd():
        """Create the tables (dev). In production use flask db upgrade."""
        with app.app_context():
            # sanity check
            db.session.execute(text("SELECT 1"))
            db.create_all()
            print("Tables created.")

    @app.cli.command("expire-payments")
    def expire_payments_cmd():
        """Expire pending payments older than PENDING_PAYMENT_TTL_HOURS."""
        from .services.maintenance import expire_stale_payments

        with app.app_context():
            expired = expire_stale_payments()
            print(f"Expired {len(expired)} pending payment(s).")

    @app.cli.command("notify-expiring")
    def notify_expiring_cmd():
        """Send subscription_expiring notices for subscriptions about to end."""
        from .services.notifications import notify_expiring_subscriptions

        with app.app_context():
            sent = notify_expiring_subscriptions()
            print(f"Sent {sent} expiry notice(s).")


def register_jobs(app):
    """Schedule the periodic maintenance jobs on the shared scheduler."""
    from .services.maintenance import expire_stale_payments
    from .services.notifications import notify_expiring_subscriptions

    def _in_context(func):
        def job():
            with app.app_context():
                func()
        return job

    scheduler.add_job(_in_context(expire_stale_payments), "interval", hours=1,
                      id="expire_stale_payments", replace_existing=True)
    scheduler.add_job(_in_context(notify_expiring_subscriptions), "cron", hour=9, minute=0,
                      id="notify_expiring_subscriptions", replace_existing=True)
