"""Gunicorn configuration file.

The directory lives in process memory, so a single worker process serves
all requests; concurrency comes from threads. Writes are serialised by the
store's lock.
"""
import os

wsgi_app = "idp.flask_app:create_app()"
bind = os.environ.get("GUNICORN_BIND", "0.0.0.0:8000")
workers = 1
threads = int(os.environ.get("GUNICORN_THREADS", "4"))
accesslog = "-"
errorlog = "-"


def post_fork(server, worker):
    """
    Called just after a worker has been forked.

    Warns when the secret key is neither mounted nor set, since settings
    will refuse to start outside demo mode.
    """
    from pathlib import Path

    demo_mode = os.environ.get("DEMO_MODE", "false").lower() == "true"
    secret_file = Path("/run/secrets") / "flask_secret_key"

    if secret_file.exists():
        worker.log.info("Using flask_secret_key from /run/secrets")
    elif os.environ.get("FLASK_SECRET_KEY"):
        worker.log.info("Using FLASK_SECRET_KEY from environment")
    elif not demo_mode:
        worker.log.error("FLASK_SECRET_KEY missing and DEMO_MODE=false; startup will fail")

    seed = os.environ.get("DIRECTORY_SEED_FILE")
    worker.log.info(f"Directory seed: {seed or '(none, empty directory)'}")
